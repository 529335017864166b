"""
Identifier scheme for elements inside a document namespace.

Every element is addressed by (document URI, element ID).
Element IDs come in a few flavours, recognised by prefix:

    SPDXRef-<idstring>        documents, files, packages
    LicenseRef-<idstring>     extracted (non-listed) licenses
    DocumentRef-<idstring>    external document references
    __anon__<n>               anonymous elements (checksums, licenses,
                              creation info, relationships)

Generated IDs carry the "gnrtd" marker followed by a counter
that is local to one namespace.
"""

import re
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlparse


SPDX_ELEMENT_REF_PRENUM = "SPDXRef-"
LICENSE_REF_PREFIX = "LicenseRef-"
DOCUMENT_REF_PREFIX = "DocumentRef-"
ANONYMOUS_PREFIX = "__anon__"
GENERATED = "gnrtd"

DOCUMENT_ID = "SPDXRef-DOCUMENT"

_IDSTRING = r"[A-Za-z0-9.\-]+"
_SPDX_ID_RE = re.compile(rf"^{SPDX_ELEMENT_REF_PRENUM}{_IDSTRING}$")
_LICENSE_REF_RE = re.compile(rf"^{LICENSE_REF_PREFIX}{_IDSTRING}$")
_DOCUMENT_REF_RE = re.compile(rf"^{DOCUMENT_REF_PREFIX}{_IDSTRING}$")
_ANONYMOUS_RE = re.compile(rf"^{ANONYMOUS_PREFIX}(\d+)$")
_GENERATED_RE = re.compile(
    rf"^(?:{SPDX_ELEMENT_REF_PRENUM}|{LICENSE_REF_PREFIX}|{DOCUMENT_REF_PREFIX}){GENERATED}(\d+)$"
)
_EXTERNAL_REF_RE = re.compile(
    rf"^({DOCUMENT_REF_PREFIX}{_IDSTRING}):({SPDX_ELEMENT_REF_PRENUM}{_IDSTRING})$"
)


class IdType(Enum):
    """Kinds of element identifiers."""
    SPDX_ID = "SPDXRef"
    LICENSE_REF = "LicenseRef"
    DOCUMENT_REF = "DocumentRef"
    ANONYMOUS = "anonymous"
    UNKNOWN = "unknown"


_PREFIXES = {
    IdType.SPDX_ID: SPDX_ELEMENT_REF_PRENUM,
    IdType.LICENSE_REF: LICENSE_REF_PREFIX,
    IdType.DOCUMENT_REF: DOCUMENT_REF_PREFIX,
}


def id_type(element_id: str) -> IdType:
    """Classify an element ID by its syntax."""
    if not element_id:
        return IdType.UNKNOWN
    if _ANONYMOUS_RE.match(element_id):
        return IdType.ANONYMOUS
    if _SPDX_ID_RE.match(element_id):
        return IdType.SPDX_ID
    if _LICENSE_REF_RE.match(element_id):
        return IdType.LICENSE_REF
    if _DOCUMENT_REF_RE.match(element_id):
        return IdType.DOCUMENT_REF
    return IdType.UNKNOWN


def is_anonymous(element_id: str) -> bool:
    return _ANONYMOUS_RE.match(element_id or "") is not None


def is_valid_spdx_id(element_id: str) -> bool:
    return _SPDX_ID_RE.match(element_id or "") is not None


def is_valid_license_ref(element_id: str) -> bool:
    return _LICENSE_REF_RE.match(element_id or "") is not None


def generated_id(kind: IdType, counter: int) -> str:
    """
    Build the generated ID for `counter` in the given ID family.

    Examples:
        generated_id(IdType.ANONYMOUS, 3)   -> "__anon__3"
        generated_id(IdType.LICENSE_REF, 0) -> "LicenseRef-gnrtd0"
    """
    if kind == IdType.ANONYMOUS:
        return f"{ANONYMOUS_PREFIX}{counter}"
    if kind not in _PREFIXES:
        raise ValueError(f"Cannot generate IDs of type {kind}")
    return f"{_PREFIXES[kind]}{GENERATED}{counter}"


def generated_counter(element_id: str) -> Optional[int]:
    """
    Return the counter embedded in a generated-looking ID, else None.

    Used by stores to keep their counters ahead of IDs that were
    registered explicitly (e.g. while deserializing).
    """
    m = _ANONYMOUS_RE.match(element_id or "") or _GENERATED_RE.match(element_id or "")
    if m:
        return int(m.group(1))
    return None


def is_valid_namespace_uri(uri: str) -> bool:
    """
    A document namespace must be an absolute URI without a fragment.
    """
    if not uri or any(c.isspace() for c in uri) or "#" in uri:
        return False
    parsed = urlparse(uri)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def parse_external_ref(value: str) -> Optional[Tuple[str, str]]:
    """
    Split "DocumentRef-x:SPDXRef-y" into ("DocumentRef-x", "SPDXRef-y").

    Cross-document references are plain strings, never live handles.
    Returns None if `value` is not an external reference.
    """
    m = _EXTERNAL_REF_RE.match(value or "")
    if not m:
        return None
    return m.group(1), m.group(2)
