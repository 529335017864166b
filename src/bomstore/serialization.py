"""
Serialization helpers: element records <-> document dict <-> bytes.

Two layers, kept explicit:
    - document_to_dict / document_from_dict map flat ElementRecords to the
      persisted document shape and back
    - dump_bytes / load_bytes frame that dict as JSON, YAML or XML

Persisted document shape (all formats):

    {
      "SPDXID": "SPDXRef-DOCUMENT",
      "documentNamespace": "<uri>",
      "specVersion": "SPDX-2.3",
      "name": "...",
      "dataLicense": "CC0-1.0",
      "creationInfo": {"creators": [...], "created": "..."},
      "documentDescribes": ["SPDXRef-File"],
      "elements": [{"SPDXID": "SPDXRef-File", "type": "File", ...}]
    }

COMPACT verbosity inlines anonymous elements (licenses become expression
strings, checksums become {algorithm, checksumValue} maps). FULL verbosity
writes every element as its own record and every reference as {"ref": id}.
"""
from __future__ import annotations

import datetime
import json
import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml

from bomstore.errors import MalformedExpression, ParseFailure, SerializationFailure
from bomstore.identifiers import DOCUMENT_ID, generated_id, is_anonymous, IdType
from bomstore.license_parser import canonicalize
from bomstore.model import (
    ElementRecord,
    ElementRef,
    ElementType,
    Prop,
    LICENSE_PROPERTIES,
    LIST_PROPERTIES,
    REFERENCE_PROPERTIES,
    checksum_problem,
)


class Format(Enum):
    """Wire formats."""
    JSON_PRETTY = "json-pretty"
    JSON = "json"
    YAML = "yaml"
    XML = "xml"


class Verbosity(Enum):
    """How nested objects are written."""
    COMPACT = "compact"  # Inline anonymous elements
    FULL = "full"        # Every element is a record, references by ID


ID_KEY = "SPDXID"
TYPE_KEY = "type"
REF_KEY = "ref"
NAMESPACE_KEY = "documentNamespace"
ELEMENTS_KEY = "elements"

_RESERVED_KEYS = {ID_KEY, TYPE_KEY, NAMESPACE_KEY, ELEMENTS_KEY}

# Nested maps under these properties may omit "type"
_INLINE_TYPES = {
    Prop.CREATION_INFO: ElementType.CREATION_INFO,
    Prop.CHECKSUMS: ElementType.CHECKSUM,
    Prop.RELATIONSHIPS: ElementType.RELATIONSHIP,
}

# Properties without which an element cannot be written
REQUIRED_FOR_SERIALIZATION = {
    ElementType.DOCUMENT: (Prop.SPEC_VERSION, Prop.NAME, Prop.DATA_LICENSE, Prop.CREATION_INFO),
    ElementType.FILE: (Prop.FILE_NAME,),
    ElementType.CHECKSUM: (Prop.ALGORITHM, Prop.CHECKSUM_VALUE),
    ElementType.CREATION_INFO: (Prop.CREATED,),
    ElementType.LICENSE: (Prop.LICENSE_EXPRESSION,),
    ElementType.RELATIONSHIP: (Prop.RELATIONSHIP_TYPE, Prop.RELATED_SPDX_ELEMENT),
}


@dataclass
class DecodedDocument:
    """Result of decoding: the namespace and its records in registration order."""
    document_uri: str
    records: List[ElementRecord] = field(default_factory=list)


# =============================================================================
# RECORDS -> DICT
# =============================================================================

def _iter_refs(value: Any):
    if isinstance(value, ElementRef):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, ElementRef):
                yield item


class _AnonymousIds:
    """Generated anonymous IDs, lowest counter first, skipping declared IDs."""

    def __init__(self, taken):
        self.taken = set(taken)
        self.counter = 0

    def next(self) -> str:
        element_id = generated_id(IdType.ANONYMOUS, self.counter)
        while element_id in self.taken:
            self.counter += 1
            element_id = generated_id(IdType.ANONYMOUS, self.counter)
        self.counter += 1
        return element_id


def _license_key(expression: Any) -> Any:
    try:
        return canonicalize(expression)
    except (MalformedExpression, AttributeError, TypeError):
        return expression


def _place(element_id: str, own: Any, owned: List[Any]) -> List[Any]:
    """The document precedes its inline elements; other records follow theirs."""
    if element_id == DOCUMENT_ID:
        return [own] + owned
    return owned + [own]


class _Encoder:
    """Turns a document's records into the persisted dict shape."""

    def __init__(self, document_uri: str, records: List[ElementRecord], verbosity: Verbosity):
        self.document_uri = document_uri
        self.records = records
        self.verbosity = verbosity
        self.by_id = {r.element_id: r for r in records}
        self.inlined = self._choose_inlined()

    def _choose_inlined(self) -> set:
        if self.verbosity == Verbosity.FULL:
            return set()
        ref_counts: Counter = Counter()
        for record in self.records:
            for value in record.properties.values():
                for ref in _iter_refs(value):
                    ref_counts[ref.element_id] += 1
        inlined = set()
        for record in self.records:
            if not is_anonymous(record.element_id) or record.element_id == DOCUMENT_ID:
                continue
            count = ref_counts.get(record.element_id, 0)
            # Licenses are written as expressions wherever they are used;
            # other anonymous elements only when they have exactly one referrer
            if record.type_tag == ElementType.LICENSE and count > 0:
                inlined.add(record.element_id)
            elif count == 1:
                inlined.add(record.element_id)
        return self._settle(self._anchor(inlined))

    def _anchor(self, inlined: set) -> set:
        """Demote inlined elements no written record reaches (anonymous cycles)."""
        while True:
            reached = set()
            stack = [r for r in self.records if r.element_id not in inlined]
            while stack:
                record = stack.pop()
                for value in record.properties.values():
                    for ref in _iter_refs(value):
                        if ref.element_id in inlined and ref.element_id not in reached:
                            reached.add(ref.element_id)
                            stack.append(self.by_id[ref.element_id])
            orphans = [r.element_id for r in self.records
                       if r.element_id in inlined and r.element_id not in reached]
            if not orphans:
                return inlined
            inlined.discard(orphans[0])

    def _settle(self, inlined: set) -> set:
        """
        Demote inlined elements that decoding would not put back in place.

        An inlined element loses its ID on the way out, and decoding hands
        it a generated one. It stays inlined only if that generated ID and
        its registration position both match what the store holds now.
        """
        stored = [r.element_id for r in self.records]
        while inlined:
            decoded = self._decoded_order(inlined)
            for position, element_id in enumerate(stored):
                pair = decoded[position] if position < len(decoded) else None
                if pair == (element_id, element_id):
                    continue
                if element_id in inlined:
                    inlined.discard(element_id)
                elif pair is not None and pair[0] in inlined:
                    inlined.discard(pair[0])
                else:
                    # Document not first: positions cannot be reproduced anyway
                    return inlined
                break
            else:
                return inlined
        return inlined

    def _decoded_order(self, inlined: set) -> List[tuple]:
        """(stored ID, decoded ID) pairs in the order decoding would register them."""
        declared = [r for r in self.records if r.element_id == DOCUMENT_ID]
        declared += [r for r in self.records
                     if r.element_id != DOCUMENT_ID and r.element_id not in inlined]
        allocator = _AnonymousIds(r.element_id for r in declared)
        licenses = set()

        def walk(record: ElementRecord, owned: list) -> None:
            for name in sorted(record.properties):
                for ref in _iter_refs(record.properties[name]):
                    if ref.element_id not in inlined:
                        continue
                    target = self.by_id[ref.element_id]
                    if target.type_tag == ElementType.LICENSE:
                        key = _license_key(target.properties.get(Prop.LICENSE_EXPRESSION))
                        if key in licenses:
                            continue
                        licenses.add(key)
                        owned.append((target.element_id, allocator.next()))
                    else:
                        owned.append((target.element_id, allocator.next()))
                        walk(target, owned)

        order = []
        for record in declared:
            owned: list = []
            walk(record, owned)
            own = (record.element_id, record.element_id)
            order.extend(_place(record.element_id, own, owned))
        return order

    def check(self) -> None:
        for record in self.records:
            for name in REQUIRED_FOR_SERIALIZATION.get(record.type_tag, ()):
                if record.properties.get(name) in (None, "", [], ()):
                    raise SerializationFailure(
                        f"{record.type_tag} {record.element_id} is missing required property '{name}'"
                    )
            for name, value in record.properties.items():
                if name in _RESERVED_KEYS:
                    raise SerializationFailure(
                        f"Property name '{name}' on {record.element_id} is reserved"
                    )
                for ref in _iter_refs(value):
                    if ref.document_uri != self.document_uri or ref.element_id not in self.by_id:
                        raise SerializationFailure(
                            f"{record.element_id}.{name} references missing element {ref.element_id}"
                        )

    def value(self, prop: str, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [self.value(prop, item) for item in value]
        if not isinstance(value, ElementRef):
            return value

        target = self.by_id[value.element_id]
        if target.element_id in self.inlined:
            if target.type_tag == ElementType.LICENSE and prop in LICENSE_PROPERTIES:
                return target.properties[Prop.LICENSE_EXPRESSION]
            nested = self.properties(target)
            if _INLINE_TYPES.get(prop) != target.type_tag:
                nested[TYPE_KEY] = target.type_tag
            return nested
        if self.verbosity == Verbosity.COMPACT and prop in REFERENCE_PROPERTIES:
            return target.element_id
        return {REF_KEY: target.element_id}

    def properties(self, record: ElementRecord) -> Dict[str, Any]:
        return {name: self.value(name, v) for name, v in record.properties.items()}

    def to_dict(self) -> Dict[str, Any]:
        doc = self.by_id.get(DOCUMENT_ID)
        if doc is None:
            raise SerializationFailure(f"No {DOCUMENT_ID} element in {self.document_uri}")
        result = self.properties(doc)
        result[ID_KEY] = DOCUMENT_ID
        result[NAMESPACE_KEY] = self.document_uri

        elements = []
        for record in self.records:
            if record.element_id == DOCUMENT_ID or record.element_id in self.inlined:
                continue
            entry = self.properties(record)
            entry[ID_KEY] = record.element_id
            entry[TYPE_KEY] = record.type_tag
            elements.append(entry)
        result[ELEMENTS_KEY] = elements
        return result


def document_to_dict(document_uri: str, records: List[ElementRecord],
                     verbosity: Verbosity = Verbosity.COMPACT) -> Dict[str, Any]:
    """
    Build the persisted document dict.

    Raises:
        SerializationFailure: missing document element, missing required
            property, reserved property name, or dangling reference
    """
    encoder = _Encoder(document_uri, records, verbosity)
    encoder.check()
    return encoder.to_dict()


# =============================================================================
# DICT -> RECORDS
# =============================================================================

_SKIP = object()


def _reject_reserved(data: Dict[str, Any], where: str) -> None:
    """Keys the document shape uses itself cannot be element properties."""
    for key in (NAMESPACE_KEY, ELEMENTS_KEY):
        if key in data:
            raise ParseFailure(f"Reserved key '{key}' on {where}")


class _Decoder:
    """
    Resolves a persisted document dict into flat ElementRecords.

    Declared records keep their IDs. Inline elements get the lowest free
    anonymous IDs in a deterministic order (records in file order,
    properties in sorted order, depth-first) and are registered just
    before the record that holds them; the document's own inline elements
    follow it. Serializing writes an anonymous element inline only when
    this reproduces its ID and position.
    """

    def __init__(self, document_uri: str, declared: List[str]):
        self.document_uri = document_uri
        self.declared = set(declared)
        self.anonymous_ids = _AnonymousIds(declared)
        self.inline: List[Optional[ElementRecord]] = []
        self.license_cache: Dict[str, str] = {}

    def _allocate(self) -> str:
        return self.anonymous_ids.next()

    def take_inline(self) -> List[ElementRecord]:
        """Inline records allocated since the last call, in allocation order."""
        inline, self.inline = self.inline, []
        return inline

    def _ref(self, element_id: Any) -> ElementRef:
        if not isinstance(element_id, str) or element_id not in self.declared:
            raise ParseFailure(f"Reference to undeclared element ID '{element_id}'")
        return ElementRef(self.document_uri, element_id)

    def _license(self, prop: str, text: str) -> ElementRef:
        try:
            expression = canonicalize(text)
        except MalformedExpression as e:
            raise ParseFailure(f"Malformed license expression in '{prop}': {e}", offset=e.offset) from e
        element_id = self.license_cache.get(expression)
        if element_id is None:
            element_id = self._allocate()
            self.license_cache[expression] = element_id
            self.inline.append(
                ElementRecord(element_id, ElementType.LICENSE, {Prop.LICENSE_EXPRESSION: expression})
            )
        return ElementRef(self.document_uri, element_id)

    def _nested(self, prop: str, data: Dict[str, Any]) -> ElementRef:
        if ID_KEY in data:
            raise ParseFailure(f"Nested element under '{prop}' cannot carry an {ID_KEY}")
        _reject_reserved(data, f"nested element under '{prop}'")
        type_tag = data.get(TYPE_KEY) or _INLINE_TYPES.get(prop)
        if not isinstance(type_tag, str):
            raise ParseFailure(f"Cannot determine element type of nested object under '{prop}'")
        raw = {k: v for k, v in data.items() if k != TYPE_KEY}

        if type_tag == ElementType.LICENSE:
            expression = raw.get(Prop.LICENSE_EXPRESSION)
            if not isinstance(expression, str):
                raise ParseFailure(f"Nested License under '{prop}' has no licenseExpression")
            return self._license(prop, expression)

        element_id = self._allocate()
        slot = len(self.inline)
        self.inline.append(None)
        record = ElementRecord(element_id, type_tag, self.properties(raw))
        validate_record(record)
        self.inline[slot] = record
        return ElementRef(self.document_uri, element_id)

    def value(self, prop: str, value: Any) -> Any:
        if value is None:
            return _SKIP
        if isinstance(value, bool) or isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            if prop in LICENSE_PROPERTIES:
                return self._license(prop, value)
            if prop in REFERENCE_PROPERTIES:
                return self._ref(value)
            return value
        if isinstance(value, datetime.datetime):
            if value.tzinfo is not None:
                value = value.astimezone(datetime.timezone.utc)
            return value.strftime("%Y-%m-%dT%H:%M:%SZ")
        if isinstance(value, datetime.date):
            return value.isoformat()
        if isinstance(value, list):
            items = []
            for item in value:
                if item is None or isinstance(item, list):
                    raise ParseFailure(f"Invalid list item under '{prop}': {item!r}")
                items.append(self.value(prop, item))
            return items
        if isinstance(value, dict):
            if set(value) == {REF_KEY}:
                return self._ref(value[REF_KEY])
            return self._nested(prop, value)
        raise ParseFailure(f"Unsupported value under '{prop}': {value!r}")

    def properties(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        for name in raw:
            if not isinstance(name, str):
                raise ParseFailure(f"Property names must be strings, got {name!r}")
        resolved = {}
        for name in sorted(raw):
            value = self.value(name, raw[name])
            if value is _SKIP:
                continue
            # A lone item under a list property is a one-item list
            if name in LIST_PROPERTIES and not isinstance(value, list):
                value = [value]
            resolved[name] = value
        return resolved


def validate_record(record: ElementRecord) -> None:
    """Reject values that are malformed for the record's declared type."""
    props = record.properties
    if record.type_tag == ElementType.CHECKSUM:
        algorithm = props.get(Prop.ALGORITHM)
        value = props.get(Prop.CHECKSUM_VALUE)
        if algorithm is not None and value is not None:
            problem = checksum_problem(algorithm, value)
            if problem:
                raise ParseFailure(f"Invalid checksum on {record.element_id}: {problem}")
    elif record.type_tag == ElementType.LICENSE:
        expression = props.get(Prop.LICENSE_EXPRESSION)
        if expression is not None:
            try:
                props[Prop.LICENSE_EXPRESSION] = canonicalize(expression)
            except (MalformedExpression, AttributeError) as e:
                raise ParseFailure(f"Invalid license expression on {record.element_id}: {e}") from e


def document_from_dict(data: Any) -> DecodedDocument:
    """
    Resolve a persisted document dict into records.

    Raises:
        ParseFailure: on any structural inconsistency
    """
    if not isinstance(data, dict):
        raise ParseFailure("Document root must be a mapping")

    document_uri = data.get(NAMESPACE_KEY)
    if not isinstance(document_uri, str) or not document_uri:
        raise ParseFailure(f"Missing '{NAMESPACE_KEY}'")
    if data.get(ID_KEY, DOCUMENT_ID) != DOCUMENT_ID:
        raise ParseFailure(f"Document {ID_KEY} must be {DOCUMENT_ID}")

    elements = data.get(ELEMENTS_KEY) or []
    if not isinstance(elements, list):
        raise ParseFailure(f"'{ELEMENTS_KEY}' must be a list")

    declared = [(DOCUMENT_ID, ElementType.DOCUMENT,
                 {k: v for k, v in data.items() if k not in _RESERVED_KEYS})]
    seen = {DOCUMENT_ID}
    for entry in elements:
        if not isinstance(entry, dict):
            raise ParseFailure("Element records must be mappings")
        element_id = entry.get(ID_KEY)
        type_tag = entry.get(TYPE_KEY)
        if not isinstance(element_id, str) or not element_id:
            raise ParseFailure(f"Element record without {ID_KEY}")
        if not isinstance(type_tag, str) or not type_tag:
            raise ParseFailure(f"Element {element_id} has no type")
        if element_id in seen:
            raise ParseFailure(f"Duplicate element ID '{element_id}'")
        _reject_reserved(entry, f"element '{element_id}'")
        seen.add(element_id)
        declared.append((element_id, type_tag, {k: v for k, v in entry.items() if k not in (ID_KEY, TYPE_KEY)}))

    decoder = _Decoder(document_uri, [d[0] for d in declared])
    records = []
    for element_id, type_tag, raw in declared:
        record = ElementRecord(element_id, type_tag, decoder.properties(raw))
        validate_record(record)
        records.extend(_place(element_id, record, decoder.take_inline()))

    return DecodedDocument(document_uri, records)


# =============================================================================
# DICT <-> BYTES
# =============================================================================

_XML_ROOT = "spdxDocument"


def _xml_value(elem: ET.Element, value: Any) -> None:
    if isinstance(value, dict):
        elem.set("kind", "map")
        for key, item in value.items():
            child = ET.SubElement(elem, "entry", key=str(key))
            _xml_value(child, item)
    elif isinstance(value, list):
        elem.set("kind", "list")
        for item in value:
            _xml_value(ET.SubElement(elem, "item"), item)
    elif isinstance(value, bool):
        elem.set("kind", "bool")
        elem.text = "true" if value else "false"
    elif isinstance(value, int):
        elem.set("kind", "int")
        elem.text = str(value)
    elif isinstance(value, float):
        elem.set("kind", "float")
        elem.text = repr(value)
    elif value is None:
        elem.set("kind", "null")
    else:
        elem.set("kind", "str")
        elem.text = str(value)


def _xml_parse(elem: ET.Element) -> Any:
    kind = elem.get("kind", "str")
    if kind == "map":
        result = {}
        for child in elem:
            if child.tag != "entry" or child.get("key") is None:
                raise ParseFailure(f"Unexpected XML element <{child.tag}> in map")
            result[child.get("key")] = _xml_parse(child)
        return result
    if kind == "list":
        return [_xml_parse(child) for child in elem]
    text = elem.text or ""
    try:
        if kind == "bool":
            return text.strip() == "true"
        if kind == "int":
            return int(text)
        if kind == "float":
            return float(text)
    except ValueError as e:
        raise ParseFailure(f"Invalid {kind} value in XML: '{text}'") from e
    if kind == "null":
        return None
    if kind != "str":
        raise ParseFailure(f"Unknown XML value kind '{kind}'")
    return text


def dump_bytes(data: Dict[str, Any], fmt: Format) -> bytes:
    if fmt == Format.JSON_PRETTY:
        return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")
    if fmt == Format.JSON:
        return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")
    if fmt == Format.YAML:
        return yaml.safe_dump(data, sort_keys=True, allow_unicode=True).encode("utf-8")
    if fmt == Format.XML:
        root = ET.Element(_XML_ROOT)
        _xml_value(root, data)
        ET.indent(root)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)
    raise ValueError(f"Unsupported format: {fmt}")


def detect_format(data: bytes) -> Format:
    """Guess the format from the first non-blank byte."""
    head = data.lstrip()[:1]
    if head == b"<":
        return Format.XML
    if head in (b"{", b"["):
        return Format.JSON
    return Format.YAML


def load_bytes(data: bytes, fmt: Optional[Format] = None) -> Any:
    """
    Decode bytes into plain Python data.

    Raises:
        ParseFailure: if the bytes are not valid for the format
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    if fmt is None:
        fmt = detect_format(data)
    try:
        if fmt in (Format.JSON, Format.JSON_PRETTY):
            return json.loads(data.decode("utf-8"))
        if fmt == Format.YAML:
            return yaml.safe_load(data.decode("utf-8"))
        if fmt == Format.XML:
            root = ET.fromstring(data)
            if root.tag != _XML_ROOT:
                raise ParseFailure(f"Unexpected XML root element <{root.tag}>")
            return _xml_parse(root)
    except json.JSONDecodeError as e:
        raise ParseFailure(f"Invalid JSON: {e.msg}", offset=e.pos) from e
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise ParseFailure(f"Invalid YAML: {e}", offset=mark.index if mark else None) from e
    except ET.ParseError as e:
        raise ParseFailure(f"Invalid XML: {e}") from e
    except UnicodeDecodeError as e:
        raise ParseFailure(f"Document is not UTF-8: {e.reason}", offset=e.start) from e
    raise ValueError(f"Unsupported format: {fmt}")


def encode(document_uri: str, records: List[ElementRecord],
           fmt: Format = Format.JSON_PRETTY, verbosity: Verbosity = Verbosity.COMPACT) -> bytes:
    return dump_bytes(document_to_dict(document_uri, records, verbosity), fmt)


def decode(data: bytes, fmt: Optional[Format] = None) -> DecodedDocument:
    return document_from_dict(load_bytes(data, fmt))
