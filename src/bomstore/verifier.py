"""
Document Verifier: structural and semantic checks of a stored document.

Three passes over every element reachable from the document:
    1. Mandatory fields per type
    2. Referential integrity (references resolve inside the namespace)
    3. Value shape (checksums, dates, creators, IDs, license expressions)

IMPORTANT: This module only reads the store. It never raises for an
incomplete document: every problem becomes a warning string, and all
passes always run to completion.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Set

from bomstore.errors import MalformedExpression
from bomstore.expressions import license_refs
from bomstore.identifiers import (
    DOCUMENT_ID,
    is_anonymous,
    is_valid_license_ref,
    is_valid_namespace_uri,
    is_valid_spdx_id,
)
from bomstore.license_parser import parse
from bomstore.model import ElementRef, ElementType, Prop, RelationshipType, checksum_problem
from bomstore.store import ModelStore


logger = logging.getLogger(__name__)


REQUIRED_PROPERTIES: Dict[str, tuple] = {
    ElementType.DOCUMENT: (Prop.CREATION_INFO, Prop.SPEC_VERSION, Prop.DATA_LICENSE, Prop.NAME),
    ElementType.FILE: (Prop.FILE_NAME, Prop.CHECKSUMS),
    ElementType.PACKAGE: (Prop.NAME, Prop.DOWNLOAD_LOCATION),
    ElementType.CREATION_INFO: (Prop.CREATORS, Prop.CREATED),
    ElementType.CHECKSUM: (Prop.ALGORITHM, Prop.CHECKSUM_VALUE),
    ElementType.LICENSE: (Prop.LICENSE_EXPRESSION,),
    ElementType.EXTRACTED_LICENSE: (Prop.EXTRACTED_TEXT,),
    ElementType.RELATIONSHIP: (Prop.RELATIONSHIP_TYPE, Prop.RELATED_SPDX_ELEMENT),
}

# Elements of these types carry SPDXRef- IDs
_SPDX_ID_TYPES = {ElementType.DOCUMENT, ElementType.FILE, ElementType.PACKAGE}

DATA_LICENSE = "CC0-1.0"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")
_SPEC_VERSION_RE = re.compile(r"^SPDX-2\.\d+$")
_CREATOR_PREFIXES = ("Person:", "Organization:", "Tool:")


def _is_empty(value) -> bool:
    return value is None or value == "" or value == []


def _refs_in(value) -> List[ElementRef]:
    if isinstance(value, ElementRef):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, ElementRef)]
    return []


@dataclass
class VerificationReport:
    """Result of verifying one document."""

    document_uri: str
    elements_checked: int = 0
    missing_elements: int = 0
    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)

    @property
    def is_valid(self) -> bool:
        return not self.warnings


def _label(store: ModelStore, ref: ElementRef) -> str:
    type_tag = store.get_type(ref) or "Element"
    return f"{type_tag} {ref.element_id}"


def _reachable(store: ModelStore, root: ElementRef) -> List[ElementRef]:
    """Breadth-first walk over reference properties, existing elements only."""
    seen: Set[ElementRef] = {root}
    order: List[ElementRef] = []
    queue = deque([root])
    while queue:
        ref = queue.popleft()
        order.append(ref)
        for name in store.property_names(ref):
            for target in _refs_in(store.get_property(ref, name)):
                if target in seen:
                    continue
                seen.add(target)
                if store.get_type(target) is not None:
                    queue.append(target)
    return order


def _check_mandatory(store: ModelStore, elements: List[ElementRef], report: VerificationReport) -> None:
    for ref in elements:
        type_tag = store.get_type(ref)
        for name in REQUIRED_PROPERTIES.get(type_tag, ()):
            if _is_empty(store.get_property(ref, name)):
                report.add_warning(f"{_label(store, ref)} is missing required property '{name}'")


def _check_references(store: ModelStore, elements: List[ElementRef], report: VerificationReport) -> None:
    for ref in elements:
        for name in store.property_names(ref):
            for target in _refs_in(store.get_property(ref, name)):
                if target.document_uri != ref.document_uri:
                    report.add_warning(
                        f"{_label(store, ref)} property '{name}' references {target.element_id} "
                        f"outside its document namespace"
                    )
                elif not store.exists(target.document_uri, target.element_id):
                    report.missing_elements += 1
                    report.add_warning(
                        f"{_label(store, ref)} property '{name}' references missing element {target.element_id}"
                    )


def _check_element_id(store: ModelStore, ref: ElementRef, report: VerificationReport) -> None:
    type_tag = store.get_type(ref)
    element_id = ref.element_id
    if type_tag in _SPDX_ID_TYPES:
        if not is_valid_spdx_id(element_id):
            report.add_warning(f"{_label(store, ref)} has an invalid SPDX ID")
    elif type_tag == ElementType.EXTRACTED_LICENSE:
        if not is_valid_license_ref(element_id):
            report.add_warning(f"{_label(store, ref)} ID must have the form LicenseRef-<id>")
    elif not (is_anonymous(element_id) or is_valid_spdx_id(element_id)):
        report.add_warning(f"{_label(store, ref)} has an invalid element ID")


def _check_document(store: ModelStore, ref: ElementRef, report: VerificationReport) -> None:
    if not is_valid_namespace_uri(ref.document_uri):
        report.add_warning(f"Invalid document namespace URI: '{ref.document_uri}'")

    spec_version = store.get_property(ref, Prop.SPEC_VERSION)
    if isinstance(spec_version, str) and spec_version and not _SPEC_VERSION_RE.match(spec_version):
        report.add_warning(f"Unsupported specVersion '{spec_version}'")

    data_license = store.get_property(ref, Prop.DATA_LICENSE)
    if isinstance(data_license, ElementRef) and store.get_type(data_license) == ElementType.LICENSE:
        expression = store.get_property(data_license, Prop.LICENSE_EXPRESSION)
        if expression and expression != DATA_LICENSE:
            report.add_warning(f"Data license must be {DATA_LICENSE}, found '{expression}'")


def _check_creation_info(store: ModelStore, ref: ElementRef, report: VerificationReport) -> None:
    created = store.get_property(ref, Prop.CREATED)
    if isinstance(created, str) and created and not _DATE_RE.match(created):
        report.add_warning(f"Invalid creation date '{created}': expected YYYY-MM-DDThh:mm:ssZ")
    creators = store.get_property(ref, Prop.CREATORS) or []
    if not isinstance(creators, list):
        creators = [creators]
    for creator in creators:
        if not isinstance(creator, str) or not creator.startswith(_CREATOR_PREFIXES):
            report.add_warning(
                f"Invalid creator '{creator}': must start with Person:, Organization: or Tool:"
            )


def _check_checksum(store: ModelStore, ref: ElementRef, report: VerificationReport) -> None:
    algorithm = store.get_property(ref, Prop.ALGORITHM)
    value = store.get_property(ref, Prop.CHECKSUM_VALUE)
    if algorithm is None or value is None:
        return
    problem = checksum_problem(algorithm, value)
    if problem:
        report.add_warning(f"{_label(store, ref)}: {problem}")


def _check_license(store: ModelStore, ref: ElementRef, declared_refs: Set[str],
                   report: VerificationReport) -> None:
    expression = store.get_property(ref, Prop.LICENSE_EXPRESSION)
    if not isinstance(expression, str) or not expression:
        return
    try:
        tree = parse(expression)
    except MalformedExpression as e:
        report.add_warning(f"{_label(store, ref)} has a malformed license expression: {e}")
        return
    for license_ref in license_refs(tree):
        if license_ref.document_ref:
            continue
        if license_ref.license_ref_id not in declared_refs:
            report.add_warning(
                f"License {license_ref.license_ref_id} is used but not declared "
                f"as an ExtractedLicensingInfo"
            )


def _check_relationship(store: ModelStore, ref: ElementRef, report: VerificationReport) -> None:
    relationship_type = store.get_property(ref, Prop.RELATIONSHIP_TYPE)
    if relationship_type is None:
        return
    try:
        RelationshipType(relationship_type)
    except ValueError:
        report.add_warning(f"{_label(store, ref)} has unknown relationship type '{relationship_type}'")


def _check_semantics(store: ModelStore, elements: List[ElementRef], report: VerificationReport) -> None:
    declared_refs = {
        ref.element_id
        for ref in store.list_elements(report.document_uri)
        if store.get_type(ref) == ElementType.EXTRACTED_LICENSE
    }
    for ref in elements:
        type_tag = store.get_type(ref)
        _check_element_id(store, ref, report)
        if type_tag == ElementType.DOCUMENT:
            _check_document(store, ref, report)
        elif type_tag == ElementType.CREATION_INFO:
            _check_creation_info(store, ref, report)
        elif type_tag == ElementType.CHECKSUM:
            _check_checksum(store, ref, report)
        elif type_tag == ElementType.LICENSE:
            _check_license(store, ref, declared_refs, report)
        elif type_tag == ElementType.RELATIONSHIP:
            _check_relationship(store, ref, report)


def build_report(store: ModelStore, document_uri: str) -> VerificationReport:
    """
    Verify a document and return the full report.

    Checks for:
    - Required properties per element type
    - References that resolve to nothing or leave the namespace
    - Malformed checksums, dates, creators, IDs and license expressions

    Never raises for document content.
    """
    report = VerificationReport(document_uri=document_uri)
    root = ElementRef(document_uri, DOCUMENT_ID)

    if store.get_type(root) != ElementType.DOCUMENT:
        report.add_warning(f"Document {DOCUMENT_ID} does not exist in {document_uri}")
        return report

    elements = _reachable(store, root)
    report.elements_checked = len(elements)

    # =========================================================================
    # 1. MANDATORY FIELDS
    # =========================================================================
    _check_mandatory(store, elements, report)

    # =========================================================================
    # 2. REFERENTIAL INTEGRITY
    # =========================================================================
    _check_references(store, elements, report)

    # =========================================================================
    # 3. SEMANTICS
    # =========================================================================
    _check_semantics(store, elements, report)

    logger.debug("Verified %s: %d elements, %d warnings",
                 document_uri, report.elements_checked, len(report.warnings))
    return report


def verify(store: ModelStore, document_uri: str) -> List[str]:
    """Warning strings for a document; empty when it is valid."""
    return list(build_report(store, document_uri).warnings)
