"""Redact probable secrets from free text and log output."""

import logging
import re

REDACTED = "***REDACTED***"

_TOKEN_PATTERNS = [
    # Bearer tokens (HTTP headers)
    re.compile(r"Bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    # GitHub personal access tokens
    re.compile(r"(?:ghp|gho|ghu|ghs|ghr)_[a-zA-Z0-9]{36}"),
    # GitLab personal access tokens
    re.compile(r"glpat-[a-zA-Z0-9\-]{20}"),
    # AWS access key id
    re.compile(r"AKIA[0-9A-Z]{16}"),
    # Slack tokens
    re.compile(r"xox[baprs]-[0-9a-zA-Z]{10,48}"),
    # PEM private key headers
    re.compile(r"-----BEGIN [A-Z ]+ PRIVATE KEY-----"),
]

# key, separator, then a double quoted, single quoted or bare value
_KEY_VALUE_PATTERN = re.compile(
    r"([\"']?)\b(password|pwd|secret|access_token|api_token|auth_token|access_key"
    r"|api_key|client_secret|token)[\"']?(\s*([:=])\s*)"
    r"(?:\"([^\"]+)\"|'([^']+)'|([^\"'\s,;]+))",
    re.IGNORECASE,
)


def _replace_key_value(match: re.Match[str]) -> str:
    key_quote, key, _, separator = match.group(1, 2, 3, 4)
    if match.group(5) is not None:
        value = f'"{REDACTED}"'
    elif match.group(6) is not None:
        value = f"'{REDACTED}'"
    else:
        value = REDACTED

    if key_quote:
        key = f"{key_quote}{key}{key_quote}"
        if separator == ":":
            return f"{key}: {value}"
    return f"{key}{separator}{value}"


def redact(text: str | None) -> str:
    """Replace known secret shapes in ``text`` with a redaction marker.

    Applying it to already-redacted text returns the text unchanged.
    """
    if not text:
        return ""

    redacted = text
    for pattern in _TOKEN_PATTERNS:
        redacted = pattern.sub(REDACTED, redacted)

    return _KEY_VALUE_PATTERN.sub(_replace_key_value, redacted)


class RedactingFormatter(logging.Formatter):
    """Formatter that redacts the fully rendered record, tracebacks included."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the record, then redact it."""
        return redact(super().format(record))
