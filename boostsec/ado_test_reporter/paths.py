"""File system guards for primary inputs and uploaded attachments."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_INPUT_FILE_SIZE = 50 * 1024 * 1024
MAX_ATTACHMENT_SIZE = 50 * 1024 * 1024


def is_safe_path(path: str | Path, root: str | Path | None = None) -> bool:
    """Check that ``path`` resolves to a location inside ``root``.

    Relative paths are taken from the current directory. Symlinks are followed,
    so a link inside ``root`` pointing elsewhere is rejected.

    Args:
        path: Candidate path
        root: Permitted root directory (default: current working directory)

    Returns:
        True if the real path stays within the root

    """
    allowed_root = os.path.realpath(root if root is not None else os.getcwd())
    try:
        real_path = os.path.realpath(path)
    except OSError:
        return False

    return real_path == allowed_root or real_path.startswith(allowed_root + os.sep)


def check_input_file(path: Path, kind: str) -> None:
    """Reject primary input files that are not regular files or are too large.

    Raises:
        ValueError: If the path is not a file or exceeds the size ceiling

    """
    if not path.exists():
        raise ValueError(f"{kind} file not found: {path}")
    if not path.is_file():
        raise ValueError(f"{kind} path is not a file: {path}")

    size = path.stat().st_size
    if size > MAX_INPUT_FILE_SIZE:
        raise ValueError(
            f"{kind} file is too large ({size / 1024 / 1024:.2f}MB): {path}. "
            f"Max allowed: {MAX_INPUT_FILE_SIZE // 1024 // 1024}MB."
        )


def read_attachment(path: str | Path, root: str | Path | None = None) -> bytes | None:
    """Read an attachment if it passes the upload policy, else log and skip.

    The policy is path containment, existence, regular file and size ceiling,
    checked in that order.

    Returns:
        File contents, or None when the attachment must be skipped

    """
    if not is_safe_path(path, root):
        logger.warning(
            f"Security Risk: attachment path traverses outside the permitted root, "
            f"skipping: {path}"
        )
        return None

    file_path = Path(path)
    if not file_path.exists():
        logger.warning(f"Attachment not found, skipping: {path}")
        return None
    if not file_path.is_file():
        logger.warning(f"Attachment is not a regular file, skipping: {path}")
        return None

    size = file_path.stat().st_size
    if size > MAX_ATTACHMENT_SIZE:
        logger.warning(
            f"Attachment is too large ({size / 1024 / 1024:.2f}MB), skipping: {path}"
        )
        return None

    return file_path.read_bytes()
