"""
Error taxonomy for bomstore.

Every failure a caller can observe is a BomStoreError subclass.
Verification problems are NOT errors: the verifier returns plain
warning strings and never raises.
"""

from typing import Optional


class BomStoreError(Exception):
    """Base class for all bomstore failures."""
    pass


class IOFailure(BomStoreError):
    """Raised when the underlying byte source or sink is unavailable."""
    pass


class ParseFailure(BomStoreError):
    """
    Raised when serialized bytes cannot be registered as a document.

    Covers undecodable bytes as well as structural inconsistencies
    (duplicate IDs, references to undeclared IDs, malformed values).
    """

    def __init__(self, reason: str, offset: Optional[int] = None):
        self.reason = reason
        self.offset = offset
        if offset is None:
            super().__init__(reason)
        else:
            super().__init__(f"{reason} (at offset {offset})")


class MalformedExpression(BomStoreError):
    """
    Raised by the license parser.

    Properties:
        reason: What went wrong
        substring: The offending part of the input
        offset: Character offset of `substring` in the input
    """

    def __init__(self, reason: str, substring: str = "", offset: int = 0):
        self.reason = reason
        self.substring = substring
        self.offset = offset
        super().__init__(f"{reason}: '{substring}' at offset {offset}")


class AlreadyExists(BomStoreError):
    """Raised when creating an element whose (uri, id) is occupied."""
    pass


class InvalidReference(BomStoreError):
    """Raised when a reference points at no registered element."""
    pass


class DestinationConflict(BomStoreError):
    """Raised when a copy would overwrite an element in the destination."""
    pass


class SerializationFailure(BomStoreError):
    """Raised when a document cannot be serialized (missing required data)."""
    pass


__all__ = [
    "BomStoreError",
    "IOFailure",
    "ParseFailure",
    "MalformedExpression",
    "AlreadyExists",
    "InvalidReference",
    "DestinationConflict",
    "SerializationFailure",
]
