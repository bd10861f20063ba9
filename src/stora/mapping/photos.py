"""Photo reference helpers."""

from __future__ import annotations

from pathlib import Path

PASS_THROUGH_PREFIXES = ("http://", "https://", "file://", "content://")


def qualify_photo_path(path: str | None, origin: str) -> str | None:
    """
    Normalize a photo reference for storage.

    Absolute URIs are kept as they are; any other non-empty value is a
    server-relative path and is joined onto the server origin.
    """
    if not path or not path.strip():
        return None
    path = path.strip()
    if path.startswith(PASS_THROUGH_PREFIXES):
        return path
    return f"{origin.rstrip('/')}/{path.lstrip('/')}"


def local_photo_file(uri: str | None) -> Path | None:
    """The on-disk file behind a local photo reference, if it exists."""
    if not uri:
        return None
    if uri.startswith("file://"):
        uri = uri[len("file://"):]
    elif uri.startswith(PASS_THROUGH_PREFIXES):
        return None
    candidate = Path(uri).expanduser()
    return candidate if candidate.is_file() else None
