"""
Utilities for handling magnet URIs.
"""

from urllib.parse import parse_qs, urlparse

from torrent_courier.exceptions import InvalidMagnetLinkError

# Chat platforms cap text inputs at 100 characters.
MAX_DISPLAY_NAME_LENGTH = 100


def magnet_display_name(uri: str) -> str:
    """
    Extracts the display name ('dn' parameter) from a magnet URI.

    Raises:
        InvalidMagnetLinkError: If the URI is not a magnet link or has no name.
    """
    try:
        parsed = urlparse(uri.strip())
    except ValueError as e:
        raise InvalidMagnetLinkError(f"Error parsing URI: {e}") from e

    if parsed.scheme != "magnet":
        raise InvalidMagnetLinkError(f"Unexpected scheme {parsed.scheme!r}")

    names = parse_qs(parsed.query).get("dn")
    if not names or not names[0]:
        raise InvalidMagnetLinkError("Missing 'dn' query parameter")
    return names[0]


def truncate_display_name(name: str, limit: int = MAX_DISPLAY_NAME_LENGTH) -> str:
    if len(name) > limit:
        return name[: limit - 1]
    return name
