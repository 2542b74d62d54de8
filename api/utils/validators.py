"""
Object name extraction and validation.
"""
import re
from typing import Optional

# Accepts /files/foo.txt and /files/bar.baz.png, nothing nested.
FILES_PATH_PATTERN = r"^/files/(?P<name>[A-Za-z0-9_.]*)$"
FILES_PATH_REGEX = re.compile(FILES_PATH_PATTERN)

RESERVED_NAMES = {".", ".."}


class InvalidObjectNameError(ValueError):
    """Object name matched the path pattern but cannot be used."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"invalid name '{name}': {reason}")
        self.name = name
        self.reason = reason


def extract_object_name(path: str) -> Optional[str]:
    """
    Extract the object name from a request path.

    Args:
        path: Request target (path and query string)

    Returns:
        The embedded name (possibly empty), or None if the path does not
        have the form /files/<name>
    """
    match = FILES_PATH_REGEX.fullmatch(path)
    if match is None:
        return None
    return match.group("name")


def validate_object_name(name: str) -> str:
    """
    Validate an extracted object name.

    Args:
        name: Name returned by extract_object_name

    Returns:
        The name, unchanged

    Raises:
        InvalidObjectNameError: If the name is empty or dot-only
    """
    if not name:
        raise InvalidObjectNameError(name, "name cannot be empty")

    if name in RESERVED_NAMES:
        raise InvalidObjectNameError(name, "name refers to a directory")

    return name
