"""
SpdxDocument: typed convenience over a ModelStore namespace.

The store only knows name/value pairs. This facade adds typed getters
and setters, license-from-string, and creation of files, packages,
checksums and relationships in the document's namespace.

The facade holds no element state itself: every call reads or writes
through the store, so two facades over the same (store, URI) agree.
"""
from __future__ import annotations

import datetime
from typing import List, Optional, Union

from bomstore import verifier
from bomstore.copy_manager import CopyManager
from bomstore.errors import InvalidReference
from bomstore.expressions import LicenseExpression, render
from bomstore.identifiers import DOCUMENT_ID, IdType, is_valid_license_ref
from bomstore.license_parser import parse
from bomstore.model import (
    Checksum,
    ChecksumAlgorithm,
    CreationInfo,
    ElementRecord,
    ElementRef,
    ElementType,
    FileConfig,
    PackageConfig,
    Prop,
    RelationshipType,
)
from bomstore.store import ModelStore


SPDX_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def spdx_timestamp(when: Optional[datetime.datetime] = None) -> str:
    """Format a time (default: now) as YYYY-MM-DDThh:mm:ssZ in UTC."""
    if when is None:
        when = datetime.datetime.now(datetime.timezone.utc)
    elif when.tzinfo is not None:
        when = when.astimezone(datetime.timezone.utc)
    return when.strftime(SPDX_DATE_FORMAT)


class SpdxDocument:
    """
    A document in a store, addressed by its namespace URI.

    Args:
        store: Where the document lives
        document_uri: Globally unique namespace URI
        copy_manager: Used by copy_from(); a fresh one is made if None
        create: Create the document element (AlreadyExists if present);
            otherwise the document must already exist
    """

    def __init__(self, store: ModelStore, document_uri: str,
                 copy_manager: Optional[CopyManager] = None, create: bool = False):
        self.store = store
        self.document_uri = document_uri
        self.copy_manager = copy_manager
        self.ref = ElementRef(document_uri, DOCUMENT_ID)
        if create:
            store.create(document_uri, DOCUMENT_ID, ElementType.DOCUMENT)
        elif store.get_type(self.ref) != ElementType.DOCUMENT:
            raise InvalidReference(f"No document {DOCUMENT_ID} in {document_uri}")

    def _ref(self, element_id: str) -> ElementRef:
        return ElementRef(self.document_uri, element_id)

    def _register_anonymous(self, type_tag: str, properties: dict) -> ElementRef:
        element_id = self.store.next_id(self.document_uri, IdType.ANONYMOUS)
        self.store.register(self.document_uri, [ElementRecord(element_id, type_tag, properties)])
        return self._ref(element_id)

    # -------------------------------------------------------------------------
    # Scalar properties
    # -------------------------------------------------------------------------

    @property
    def spec_version(self) -> Optional[str]:
        return self.store.get_property(self.ref, Prop.SPEC_VERSION)

    def set_spec_version(self, version: str) -> None:
        self.store.set_property(self.ref, Prop.SPEC_VERSION, version)

    @property
    def name(self) -> Optional[str]:
        return self.store.get_property(self.ref, Prop.NAME)

    def set_name(self, name: str) -> None:
        self.store.set_property(self.ref, Prop.NAME, name)

    @property
    def comment(self) -> Optional[str]:
        return self.store.get_property(self.ref, Prop.COMMENT)

    def set_comment(self, comment: Optional[str]) -> None:
        self.store.set_property(self.ref, Prop.COMMENT, comment)

    # -------------------------------------------------------------------------
    # Creation info
    # -------------------------------------------------------------------------

    def create_creation_info(self, creators: List[str], created: str,
                             comment: Optional[str] = None) -> ElementRef:
        props = {Prop.CREATORS: list(creators), Prop.CREATED: created}
        if comment is not None:
            props[Prop.COMMENT] = comment
        return self._register_anonymous(ElementType.CREATION_INFO, props)

    def set_creation_info(self, info: Union[CreationInfo, ElementRef]) -> None:
        if isinstance(info, CreationInfo):
            info = self.create_creation_info(info.creators, info.created, info.comment)
        self.store.set_property(self.ref, Prop.CREATION_INFO, info)

    @property
    def creation_info(self) -> Optional[CreationInfo]:
        ref = self.store.get_property(self.ref, Prop.CREATION_INFO)
        if not isinstance(ref, ElementRef):
            return None
        return CreationInfo(
            creators=self.store.get_property(ref, Prop.CREATORS) or [],
            created=self.store.get_property(ref, Prop.CREATED) or "",
            comment=self.store.get_property(ref, Prop.COMMENT),
        )

    # -------------------------------------------------------------------------
    # Licenses
    # -------------------------------------------------------------------------

    def license(self, expression: Union[str, LicenseExpression]) -> ElementRef:
        """
        License element for an expression, created on first use.

        The expression is parsed (MalformedExpression on bad input) and
        stored in canonical form. An existing License element with the
        same canonical expression in this namespace is reused.
        """
        tree = parse(expression) if isinstance(expression, str) else expression
        canonical = render(tree)
        for ref in self.store.list_elements(self.document_uri):
            if (self.store.get_type(ref) == ElementType.LICENSE and
                    self.store.get_property(ref, Prop.LICENSE_EXPRESSION) == canonical):
                return ref
        return self._register_anonymous(ElementType.LICENSE, {Prop.LICENSE_EXPRESSION: canonical})

    def license_expression(self, ref: Optional[ElementRef]) -> Optional[LicenseExpression]:
        """Parse the expression stored on a License element back into a tree."""
        if ref is None:
            return None
        text = self.store.get_property(ref, Prop.LICENSE_EXPRESSION)
        return parse(text) if text else None

    def set_data_license(self, license: Union[str, ElementRef]) -> None:
        if not isinstance(license, ElementRef):
            license = self.license(license)
        self.store.set_property(self.ref, Prop.DATA_LICENSE, license)

    @property
    def data_license(self) -> Optional[LicenseExpression]:
        return self.license_expression(self.store.get_property(self.ref, Prop.DATA_LICENSE))

    def create_extracted_license(self, license_ref_id: str, extracted_text: str,
                                 name: Optional[str] = None) -> ElementRef:
        """Declare a LicenseRef-... license with its text."""
        if not is_valid_license_ref(license_ref_id):
            raise ValueError(f"Invalid license reference ID: '{license_ref_id}'")
        ref = self.store.create(self.document_uri, license_ref_id, ElementType.EXTRACTED_LICENSE)
        self.store.set_property(ref, Prop.EXTRACTED_TEXT, extracted_text)
        if name:
            self.store.set_property(ref, Prop.NAME, name)
        return ref

    # -------------------------------------------------------------------------
    # Checksums, files, packages, relationships
    # -------------------------------------------------------------------------

    def create_checksum(self, algorithm: ChecksumAlgorithm, value: str) -> ElementRef:
        """Validated checksum element (ValueError on a malformed digest)."""
        checksum = Checksum(algorithm, value)
        return self._register_anonymous(ElementType.CHECKSUM, {
            Prop.ALGORITHM: checksum.algorithm.value,
            Prop.CHECKSUM_VALUE: checksum.value,
        })

    def checksum(self, ref: ElementRef) -> Checksum:
        return Checksum(
            ChecksumAlgorithm(self.store.get_property(ref, Prop.ALGORITHM)),
            self.store.get_property(ref, Prop.CHECKSUM_VALUE),
        )

    def _checksum_records(self, checksums: List[Checksum]) -> List[ElementRecord]:
        return [
            ElementRecord(self.store.next_id(self.document_uri, IdType.ANONYMOUS), ElementType.CHECKSUM, {
                Prop.ALGORITHM: c.algorithm.value,
                Prop.CHECKSUM_VALUE: c.value,
            })
            for c in checksums
        ]

    def create_file(self, config: FileConfig) -> ElementRef:
        """
        Create a File and its checksum in one atomic registration.

        Raises:
            AlreadyExists: If the file ID is taken
            InvalidReference: If a license reference is not in this document
        """
        checksum_records = self._checksum_records([config.checksum])
        props = {
            Prop.FILE_NAME: config.name,
            Prop.CHECKSUMS: [self._ref(r.element_id) for r in checksum_records],
            Prop.LICENSE_CONCLUDED: config.license_concluded,
            Prop.LICENSE_INFO_IN_FILES: list(config.license_info_in_files),
            Prop.COPYRIGHT_TEXT: config.copyright_text,
        }
        if config.comment is not None:
            props[Prop.COMMENT] = config.comment
        file_record = ElementRecord(config.element_id, ElementType.FILE, props)
        self.store.register(self.document_uri, checksum_records + [file_record])
        return self._ref(config.element_id)

    def create_package(self, config: PackageConfig) -> ElementRef:
        checksum_records = self._checksum_records(config.checksums)
        props = {
            Prop.NAME: config.name,
            Prop.DOWNLOAD_LOCATION: config.download_location,
            Prop.COPYRIGHT_TEXT: config.copyright_text,
            Prop.FILES_ANALYZED: config.files_analyzed,
        }
        if checksum_records:
            props[Prop.CHECKSUMS] = [self._ref(r.element_id) for r in checksum_records]
        if config.version_info is not None:
            props[Prop.VERSION_INFO] = config.version_info
        if config.license_concluded is not None:
            props[Prop.LICENSE_CONCLUDED] = config.license_concluded
        if config.license_declared is not None:
            props[Prop.LICENSE_DECLARED] = config.license_declared
        package_record = ElementRecord(config.element_id, ElementType.PACKAGE, props)
        self.store.register(self.document_uri, checksum_records + [package_record])
        return self._ref(config.element_id)

    def add_file_to_package(self, package: ElementRef, file: ElementRef) -> None:
        self.store.add_to_collection(package, Prop.HAS_FILES, file)

    def create_relationship(self, source: ElementRef, relationship_type: RelationshipType,
                            target: ElementRef) -> ElementRef:
        """Attach a relationship to `source`'s relationships list."""
        rel = self._register_anonymous(ElementType.RELATIONSHIP, {
            Prop.SPDX_ELEMENT_ID: source,
            Prop.RELATIONSHIP_TYPE: relationship_type.value,
            Prop.RELATED_SPDX_ELEMENT: target,
        })
        self.store.add_to_collection(source, Prop.RELATIONSHIPS, rel)
        return rel

    # -------------------------------------------------------------------------
    # Describes
    # -------------------------------------------------------------------------

    @property
    def describes(self) -> List[ElementRef]:
        return self.store.get_property(self.ref, Prop.DOCUMENT_DESCRIBES) or []

    def add_describes(self, element: ElementRef) -> None:
        self.store.add_to_collection(self.ref, Prop.DOCUMENT_DESCRIBES, element)

    def remove_describes(self, element: ElementRef) -> None:
        remaining = [r for r in self.describes if r != element]
        self.store.set_property(self.ref, Prop.DOCUMENT_DESCRIBES, remaining)

    # -------------------------------------------------------------------------
    # Whole-document operations
    # -------------------------------------------------------------------------

    def verify(self) -> List[str]:
        return verifier.verify(self.store, self.document_uri)

    def copy_from(self, source: "SpdxDocument") -> None:
        """
        Copy another document's contents into this (normally empty) document.

        Raises:
            DestinationConflict: If an element to copy already exists here
        """
        if self.copy_manager is None:
            self.copy_manager = CopyManager()
        self.copy_manager.copy_into(source.store, source.ref, self.store, self.ref)

    def serialize(self, **kwargs) -> bytes:
        return self.store.serialize(self.document_uri, **kwargs)
