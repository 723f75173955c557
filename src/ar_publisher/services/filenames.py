"""Sanitization of client-supplied filenames."""

import re

from ar_publisher.domain.errors import InvalidFilename

MAX_FILENAME_LENGTH = 100

_DISALLOWED = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Reduce a client filename to a safe single path component.

    Directory parts are dropped, characters outside ``[A-Za-z0-9._-]`` become
    underscores and leading dots or dashes are removed, so the result can
    never name a parent directory, a hidden file or a command-line option.
    """
    base = re.split(r"[\\/]", filename)[-1]
    cleaned = _DISALLOWED.sub("_", base).lstrip(".-")
    if not cleaned.strip("_"):
        raise InvalidFilename(filename)
    if len(cleaned) > MAX_FILENAME_LENGTH:
        stem, dot, extension = cleaned.rpartition(".")
        if dot and stem and len(extension) < 10:
            keep = MAX_FILENAME_LENGTH - len(extension) - 1
            cleaned = f"{stem[:keep]}.{extension}"
        else:
            cleaned = cleaned[:MAX_FILENAME_LENGTH]
    return cleaned


def unique_filename(name: str, prefix: str, taken: set[str]) -> str:
    """Prefix ``name`` with ``prefix`` until it no longer collides with ``taken``."""
    candidate = name
    counter = 1
    while candidate in taken:
        candidate = f"{prefix}_{name}" if counter == 1 else f"{prefix}{counter}_{name}"
        counter += 1
    return candidate
