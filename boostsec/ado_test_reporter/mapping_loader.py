"""Load spreadsheet column mappings from YAML or JSON files."""

from pathlib import Path

import yaml


def load_column_mapping(mapping_path: Path) -> dict[str, str]:
    """Load a mapping from Azure DevOps field name to spreadsheet column.

    JSON mapping files are read as well, since JSON is valid YAML.

    Args:
        mapping_path: Mapping file

    Returns:
        Field reference name to column header

    Raises:
        FileNotFoundError: If the mapping file doesn't exist
        ValueError: If the file is not valid YAML or not a flat string mapping

    """
    if not mapping_path.exists():
        raise FileNotFoundError(f"Mapping file not found: {mapping_path}")

    try:
        with mapping_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {mapping_path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty mapping file: {mapping_path}")
    if not isinstance(data, dict):
        raise ValueError(f"Mapping in {mapping_path} must be a field-to-column map")

    mapping: dict[str, str] = {}
    for field, column in data.items():
        if not isinstance(column, str | int) or isinstance(column, bool):
            raise ValueError(
                f"Invalid column for field '{field}' in {mapping_path}: {column!r}"
            )
        mapping[str(field)] = str(column)
    return mapping
