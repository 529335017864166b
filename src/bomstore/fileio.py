"""
Reading and writing documents on disk.

The only module that touches the filesystem. OS errors become
IOFailure; anything wrong with the bytes themselves stays a
ParseFailure, so callers can tell "could not read" from "could not
understand".
"""

import logging
from pathlib import Path
from typing import Optional, Union

from bomstore.errors import IOFailure
from bomstore.serialization import Format, Verbosity
from bomstore.store import ModelStore


logger = logging.getLogger(__name__)

_SUFFIX_FORMATS = {
    ".json": Format.JSON_PRETTY,
    ".yaml": Format.YAML,
    ".yml": Format.YAML,
    ".xml": Format.XML,
}


def format_for_path(path: Union[str, Path]) -> Optional[Format]:
    """Format implied by the file suffix, or None if the suffix is unknown."""
    return _SUFFIX_FORMATS.get(Path(path).suffix.lower())


def read_document(store: ModelStore, path: Union[str, Path],
                  format: Optional[Format] = None) -> str:
    """
    Deserialize the document at `path` into `store`.

    Returns:
        The document URI

    Raises:
        IOFailure: If the file cannot be read
        ParseFailure: If its content is not a valid document
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise IOFailure(f"Cannot read {path}: {e.strerror or e}") from e
    # .json may hold compact or pretty JSON; both decode the same way
    fmt = format or format_for_path(path)
    logger.debug("Read %d bytes from %s", len(data), path)
    return store.deserialize(data, fmt)


def write_document(store: ModelStore, document_uri: str, path: Union[str, Path],
                   format: Optional[Format] = None,
                   verbosity: Optional[Verbosity] = None) -> Path:
    """
    Serialize one document to `path`.

    The document is fully encoded before the file is opened, so a
    SerializationFailure never leaves a truncated file behind.

    Raises:
        SerializationFailure: If the document cannot be written
        IOFailure: If the file cannot be written
    """
    path = Path(path)
    fmt = format or format_for_path(path)
    data = store.serialize(document_uri, format=fmt, verbosity=verbosity)
    try:
        path.write_bytes(data)
    except OSError as e:
        raise IOFailure(f"Cannot write {path}: {e.strerror or e}") from e
    logger.info("Wrote %s to %s", document_uri, path)
    return path
