"""Escaping helpers for values written to Azure DevOps."""

_FORMULA_PREFIXES = ("=", "+", "@")

_XML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    "'": "&apos;",
    '"': "&quot;",
}


def sanitize_for_csv(value: str) -> str:
    """Neutralize spreadsheet formula injection.

    A value whose trimmed form starts with ``=``, ``+``, ``@`` or a ``-`` that is
    not followed by a space gets a leading single quote. ``- item`` bullets pass.
    """
    if not value:
        return value

    trimmed = value.strip()
    if trimmed.startswith(_FORMULA_PREFIXES):
        return f"'{value}"
    if trimmed.startswith("-") and not trimmed.startswith("- "):
        return f"'{value}"
    return value


def escape_xml(value: str) -> str:
    """Escape the five XML special characters."""
    return "".join(_XML_ENTITIES.get(char, char) for char in value)


def escape_wiql(value: str) -> str:
    """Escape a value for use inside a single quoted WIQL literal."""
    return value.replace("'", "''")
