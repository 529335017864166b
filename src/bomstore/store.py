"""
Model Store contract.

A ModelStore is a backend-agnostic registry of elements keyed by
(document URI, element ID). It is the unit of truth for "does this
element exist, and what are its properties".

ARCHITECTURAL RULE:
    All mutation goes through name/value pairs.
    The store knows nothing about typed setters or license strings;
    that convenience lives in bomstore.document.

Concrete backends implement the abstract primitives. Serialization is
implemented here once, on top of those primitives.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from bomstore import serialization
from bomstore.config import StoreConfig
from bomstore.errors import InvalidReference, ParseFailure, SerializationFailure
from bomstore.identifiers import IdType
from bomstore.model import ElementRecord, ElementRef, PropertyValue
from bomstore.serialization import Format, Verbosity


logger = logging.getLogger(__name__)


class ModelStore(ABC):
    """
    Abstract element registry for one or more documents.

    Thread-safety contract for implementations:
        - Mutations of one namespace are serialized (at most one writer)
        - create() is atomic with its existence check
        - register() is all-or-nothing and never visible half-done
          for a namespace it creates
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    def create(self, document_uri: str, element_id: str, type_tag: str) -> ElementRef:
        """
        Allocate a new element with no properties.

        Raises:
            AlreadyExists: If (document_uri, element_id) is occupied
        """

    @abstractmethod
    def exists(self, document_uri: str, element_id: str) -> bool:
        """Never raises."""

    @abstractmethod
    def get_type(self, ref: ElementRef) -> Optional[str]:
        """Type tag of the element, or None if it does not exist."""

    @abstractmethod
    def get_property(self, ref: ElementRef, name: str) -> Optional[PropertyValue]:
        """Property value, or None if unset. Lists are returned as fresh lists."""

    @abstractmethod
    def set_property(self, ref: ElementRef, name: str, value: Optional[PropertyValue]) -> None:
        """
        Set (or, with None, remove) a property.

        Raises:
            InvalidReference: If `ref` does not exist, or `value` holds an
                ElementRef that is not registered in this store under
                the same document namespace
        """

    @abstractmethod
    def property_names(self, ref: ElementRef) -> List[str]:
        """Names of set properties, in insertion order."""

    @abstractmethod
    def add_to_collection(self, ref: ElementRef, name: str, value: PropertyValue) -> None:
        """Append to a list-valued property (created if unset)."""

    @abstractmethod
    def delete(self, ref: ElementRef) -> None:
        """
        Remove an element. References to it are left dangling.

        Raises:
            InvalidReference: If the element does not exist
        """

    @abstractmethod
    def list_elements(self, document_uri: str) -> List[ElementRef]:
        """Elements of a namespace in creation order."""

    @abstractmethod
    def document_uris(self) -> List[str]:
        """Namespaces known to this store."""

    @abstractmethod
    def next_id(self, document_uri: str, id_type: IdType) -> str:
        """A generated ID that is free in the namespace."""

    @abstractmethod
    def register(self, document_uri: str, records: Sequence[ElementRecord],
                 new_document: bool = False) -> List[ElementRef]:
        """
        Register many elements atomically.

        References in the records may point at other records in the batch
        or at elements already in the namespace.

        Args:
            new_document: If True, the namespace must not exist yet

        Raises:
            AlreadyExists: An ID is occupied or duplicated, or the
                namespace exists and new_document is True
            InvalidReference: A reference resolves to nothing
        """

    @abstractmethod
    def records(self, document_uri: str) -> List[ElementRecord]:
        """A consistent snapshot of a namespace as records, in creation order."""

    # -------------------------------------------------------------------------
    # Derived operations
    # -------------------------------------------------------------------------

    def remove_property(self, ref: ElementRef, name: str) -> None:
        self.set_property(ref, name, None)

    def get_properties(self, ref: ElementRef) -> Dict[str, Any]:
        return {name: self.get_property(ref, name) for name in self.property_names(ref)}

    def document_exists(self, document_uri: str) -> bool:
        return document_uri in self.document_uris()

    def serialize(self, document_uri: str, format: Optional[Format] = None,
                  verbosity: Optional[Verbosity] = None) -> bytes:
        """
        Write one document through the codec.

        Raises:
            SerializationFailure: If the document does not exist or a
                required property is absent
        """
        fmt = format or self.config.format
        verbosity = verbosity or self.config.verbosity
        if not self.document_exists(document_uri):
            raise SerializationFailure(f"Unknown document: {document_uri}")
        records = self.records(document_uri)
        data = serialization.encode(document_uri, records, fmt, verbosity)
        logger.info("Serialized %s (%d elements, %s, %s)",
                    document_uri, len(records), fmt.value, verbosity.value)
        return data

    def deserialize(self, data: bytes, format: Optional[Format] = None) -> str:
        """
        Decode and register a whole document, atomically.

        Args:
            data: Serialized document
            format: Wire format; detected from the bytes if None

        Returns:
            The document URI (namespace)

        Raises:
            ParseFailure: Undecodable bytes or structural inconsistency
            AlreadyExists: The namespace is already present in this store
        """
        decoded = serialization.decode(data, format)
        try:
            self.register(decoded.document_uri, decoded.records, new_document=True)
        except InvalidReference as e:
            raise ParseFailure(str(e)) from e
        logger.info("Deserialized %s (%d elements)", decoded.document_uri, len(decoded.records))
        return decoded.document_uri


__all__ = ["ModelStore"]
