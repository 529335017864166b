"""
Core Model Objects

Defines the data structures shared by every layer:
    - ElementRef (the only way to address an element)
    - Type tags and property names
    - Checksum and CreationInfo value objects
    - Configuration structs used to create files and packages

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about wire formats
        - Are immutable where they are values
        - Never hold a live handle into a store
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from bomstore.identifiers import is_valid_spdx_id


@dataclass(frozen=True)
class ElementRef:
    """
    Address of an element: (document URI, element ID).

    References are resolved through a store on every access.
    Two stores may hold elements with the same ElementRef;
    they are still different elements.
    """

    document_uri: str
    element_id: str

    def __str__(self) -> str:
        return f"{self.document_uri}#{self.element_id}"


# A property value as held by a store
Scalar = Union[str, int, float, bool]
PropertyValue = Union[Scalar, ElementRef, List[Union[Scalar, ElementRef]]]


class ElementType:
    """Type tags for store elements."""
    DOCUMENT = "SpdxDocument"
    FILE = "File"
    PACKAGE = "Package"
    LICENSE = "License"
    EXTRACTED_LICENSE = "ExtractedLicensingInfo"
    CHECKSUM = "Checksum"
    CREATION_INFO = "CreationInfo"
    RELATIONSHIP = "Relationship"

    ALL = (
        DOCUMENT,
        FILE,
        PACKAGE,
        LICENSE,
        EXTRACTED_LICENSE,
        CHECKSUM,
        CREATION_INFO,
        RELATIONSHIP,
    )


class Prop:
    """Property names used by the document model."""
    # Document
    SPEC_VERSION = "specVersion"
    CREATION_INFO = "creationInfo"
    DATA_LICENSE = "dataLicense"
    NAME = "name"
    DOCUMENT_DESCRIBES = "documentDescribes"
    COMMENT = "comment"

    # CreationInfo
    CREATORS = "creators"
    CREATED = "created"

    # Checksum
    ALGORITHM = "algorithm"
    CHECKSUM_VALUE = "checksumValue"

    # File / Package
    FILE_NAME = "fileName"
    CHECKSUMS = "checksums"
    LICENSE_CONCLUDED = "licenseConcluded"
    LICENSE_INFO_IN_FILES = "licenseInfoInFiles"
    LICENSE_DECLARED = "licenseDeclared"
    COPYRIGHT_TEXT = "copyrightText"
    DOWNLOAD_LOCATION = "downloadLocation"
    VERSION_INFO = "versionInfo"
    FILES_ANALYZED = "filesAnalyzed"
    HAS_FILES = "hasFiles"
    RELATIONSHIPS = "relationships"

    # License elements
    LICENSE_EXPRESSION = "licenseExpression"
    EXTRACTED_TEXT = "extractedText"

    # Relationship
    SPDX_ELEMENT_ID = "spdxElementId"
    RELATIONSHIP_TYPE = "relationshipType"
    RELATED_SPDX_ELEMENT = "relatedSpdxElement"


# Properties whose persisted form is a license expression string
LICENSE_PROPERTIES = frozenset({
    Prop.DATA_LICENSE,
    Prop.LICENSE_CONCLUDED,
    Prop.LICENSE_INFO_IN_FILES,
    Prop.LICENSE_DECLARED,
})

# Properties whose persisted form is an element ID string
REFERENCE_PROPERTIES = frozenset({
    Prop.DOCUMENT_DESCRIBES,
    Prop.HAS_FILES,
    Prop.SPDX_ELEMENT_ID,
    Prop.RELATED_SPDX_ELEMENT,
})

# Properties that always hold a list, even with a single item
LIST_PROPERTIES = frozenset({
    Prop.DOCUMENT_DESCRIBES,
    Prop.CREATORS,
    Prop.CHECKSUMS,
    Prop.LICENSE_INFO_IN_FILES,
    Prop.HAS_FILES,
    Prop.RELATIONSHIPS,
})


class RelationshipType(Enum):
    """Supported relationship types (subset of SPDX 2.3)."""
    DESCRIBES = "DESCRIBES"
    DESCRIBED_BY = "DESCRIBED_BY"
    CONTAINS = "CONTAINS"
    CONTAINED_BY = "CONTAINED_BY"
    DEPENDS_ON = "DEPENDS_ON"
    DEPENDENCY_OF = "DEPENDENCY_OF"
    GENERATED_FROM = "GENERATED_FROM"
    GENERATES = "GENERATES"
    COPY_OF = "COPY_OF"
    OTHER = "OTHER"


class ChecksumAlgorithm(Enum):
    """
    Checksum algorithms and the length of their hex digest.

    The enum value is the algorithm tag used in serialized documents.
    """
    SHA1 = "SHA1"
    SHA224 = "SHA224"
    SHA256 = "SHA256"
    SHA384 = "SHA384"
    SHA512 = "SHA512"
    SHA3_256 = "SHA3-256"
    SHA3_384 = "SHA3-384"
    SHA3_512 = "SHA3-512"
    BLAKE2b_256 = "BLAKE2b-256"
    BLAKE2b_384 = "BLAKE2b-384"
    BLAKE2b_512 = "BLAKE2b-512"
    MD2 = "MD2"
    MD4 = "MD4"
    MD5 = "MD5"
    ADLER32 = "ADLER32"

    @property
    def digest_length(self) -> int:
        return _DIGEST_LENGTHS[self]


_DIGEST_LENGTHS = {
    ChecksumAlgorithm.SHA1: 40,
    ChecksumAlgorithm.SHA224: 56,
    ChecksumAlgorithm.SHA256: 64,
    ChecksumAlgorithm.SHA384: 96,
    ChecksumAlgorithm.SHA512: 128,
    ChecksumAlgorithm.SHA3_256: 64,
    ChecksumAlgorithm.SHA3_384: 96,
    ChecksumAlgorithm.SHA3_512: 128,
    ChecksumAlgorithm.BLAKE2b_256: 64,
    ChecksumAlgorithm.BLAKE2b_384: 96,
    ChecksumAlgorithm.BLAKE2b_512: 128,
    ChecksumAlgorithm.MD2: 32,
    ChecksumAlgorithm.MD4: 32,
    ChecksumAlgorithm.MD5: 32,
    ChecksumAlgorithm.ADLER32: 8,
}

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


def checksum_problem(algorithm: str, value: str) -> Optional[str]:
    """
    Describe what is wrong with (algorithm, value), or None if valid.

    Shared by Checksum construction, deserialization and the verifier.
    """
    try:
        alg = ChecksumAlgorithm(algorithm)
    except ValueError:
        return f"unknown checksum algorithm '{algorithm}'"
    if not isinstance(value, str) or not _HEX_RE.match(value):
        return f"{alg.value} digest '{value}' is not a hex string"
    if len(value) != alg.digest_length:
        return f"{alg.value} digest must have {alg.digest_length} hex characters, found {len(value)}"
    return None


@dataclass(frozen=True)
class Checksum:
    """
    Algorithm tag + hex digest.

    Validated at construction: an invalid digest never exists as a
    Checksum object.

    Properties:
        algorithm: ChecksumAlgorithm
        value: hex digest whose length matches the algorithm
    """

    algorithm: ChecksumAlgorithm
    value: str

    def __post_init__(self):
        if not isinstance(self.algorithm, ChecksumAlgorithm):
            raise ValueError(f"algorithm must be a ChecksumAlgorithm, got {self.algorithm!r}")
        problem = checksum_problem(self.algorithm.value, self.value)
        if problem:
            raise ValueError(problem)


@dataclass(frozen=True)
class CreationInfo:
    """
    Who created a document and when.

    Properties:
        creators: Ordered creator strings ("Tool: x", "Person: y", "Organization: z")
        created: "YYYY-MM-DDThh:mm:ssZ"
        comment: Optional free text

    Format problems are reported by the verifier, not raised here.
    """

    creators: List[str]
    created: str
    comment: Optional[str] = None


@dataclass
class FileConfig:
    """
    Everything needed to create a File element.

    Required fields are enforced at construction time.

    Properties:
        element_id: "SPDXRef-..." ID for the file
        name: File name, usually a relative path like "./src/main.c"
        license_concluded: Reference to a License element
        checksum: The file's (first) checksum
        license_info_in_files: License references found in the file
        copyright_text: Copyright notice, or "NOASSERTION"
        comment: Optional free text
    """

    element_id: str
    name: str
    license_concluded: ElementRef
    checksum: Checksum
    license_info_in_files: List[ElementRef] = field(default_factory=list)
    copyright_text: str = "NOASSERTION"
    comment: Optional[str] = None

    def __post_init__(self):
        if not is_valid_spdx_id(self.element_id):
            raise ValueError(f"Invalid SPDX ID for file: '{self.element_id}'")
        if not self.name:
            raise ValueError("File name is required")
        if self.license_concluded is None:
            raise ValueError("license_concluded is required")
        if self.checksum is None:
            raise ValueError("A file needs at least one checksum")


@dataclass
class PackageConfig:
    """
    Everything needed to create a Package element.

    Properties:
        element_id: "SPDXRef-..." ID for the package
        name: Package name
        download_location: URL, or "NOASSERTION" / "NONE"
        version_info: Optional version string
        license_concluded: Optional reference to a License element
        license_declared: Optional reference to a License element
        copyright_text: Copyright notice
        checksums: Package checksums
        files_analyzed: Whether the package's files were analyzed
    """

    element_id: str
    name: str
    download_location: str = "NOASSERTION"
    version_info: Optional[str] = None
    license_concluded: Optional[ElementRef] = None
    license_declared: Optional[ElementRef] = None
    copyright_text: str = "NOASSERTION"
    checksums: List[Checksum] = field(default_factory=list)
    files_analyzed: bool = False

    def __post_init__(self):
        if not is_valid_spdx_id(self.element_id):
            raise ValueError(f"Invalid SPDX ID for package: '{self.element_id}'")
        if not self.name:
            raise ValueError("Package name is required")
        if not self.download_location:
            raise ValueError("download_location is required")


@dataclass
class ElementRecord:
    """
    One element as a flat record: ID, type tag and properties.

    This is the unit of bulk registration (deserialize, copy) and the
    unit handed to the codec. Reference values are ElementRefs.
    """

    element_id: str
    type_tag: str
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
