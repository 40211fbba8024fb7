"""
Storage key derivation and public locator parsing.

Keys follow ``folder/ownerId_timestamp.extension``. The timestamp is the
only non-deterministic input, so it comes from an injectable clock.
"""

import time
from typing import Callable
from urllib.parse import unquote, urlparse

from .errors import UnrecognizedFormat
from .models import StorageKey, ValidatedRequest

Clock = Callable[[], int]

PUBLIC_MARKER = "public"


def wall_clock_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return time.time_ns() // 1_000_000


def file_extension(filename: str) -> str:
    """
    Last dot-delimited segment of a filename.

    Empty when there is no dot, or when the only dot starts a hidden
    file name like ".env".
    """
    name = (filename or "").rsplit("/", 1)[-1]
    stem, dot, extension = name.rpartition(".")
    if not dot or not stem:
        return ""
    return extension


def derive_key(validated: ValidatedRequest, clock: Clock = wall_clock_ms) -> StorageKey:
    """
    Build the storage key for a validated request.

    No collision check is made. Two uploads for the same owner and
    folder within one millisecond get the same key, and the backend's
    overwrite protection rejects the second one.
    """
    return StorageKey(
        folder=validated.folder,
        owner_id=validated.owner_id,
        timestamp=clock(),
        extension=file_extension(validated.request.filename),
    )


def parse_locator(locator: str, marker: str = PUBLIC_MARKER) -> str:
    """
    Recover the object path from a public locator.

    Public locators look like ``.../<marker>/<bucket>/<path...>``. Everything
    after the bucket segment is the path. Signed locators are not
    supported: they are handed out for one read and never parsed back.
    """
    if not isinstance(locator, str) or not locator:
        raise UnrecognizedFormat(locator)

    try:
        parsed = urlparse(locator)
    except ValueError as e:
        raise UnrecognizedFormat(locator, f"Invalid public locator format: {e}") from e

    segments = parsed.path.split("/")
    if marker not in segments:
        raise UnrecognizedFormat(locator)

    index = segments.index(marker)
    # skip the marker itself and the bucket name
    path_segments = segments[index + 2:]
    if not path_segments or not any(path_segments):
        raise UnrecognizedFormat(locator)

    return unquote("/".join(path_segments))
