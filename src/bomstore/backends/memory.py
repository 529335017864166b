"""
In-memory ModelStore backend.

Elements live in a flat registry keyed by (namespace, element ID),
so reference cycles never become ownership cycles.

Locking:
    - One registry lock guards the namespace table and ID counters
    - One RLock per namespace serializes its writers
    - Property maps are replaced, never mutated in place, so readers of
      a single element need no lock
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from bomstore.config import StoreConfig
from bomstore.errors import AlreadyExists, InvalidReference
from bomstore.identifiers import IdType, generated_counter, generated_id, id_type
from bomstore.model import ElementRecord, ElementRef, PropertyValue
from bomstore.store import ModelStore


logger = logging.getLogger(__name__)


class _Element:
    """Stored element: type tag + property map (lists held as tuples)."""

    __slots__ = ("type_tag", "properties")

    def __init__(self, type_tag: str, properties: Optional[dict] = None):
        self.type_tag = type_tag
        self.properties = properties or {}


class _Namespace:
    """All elements of one document, in creation order."""

    def __init__(self):
        self.lock = threading.RLock()
        self.elements: Dict[str, _Element] = {}


def _freeze(value):
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return value


def _thaw(value):
    if isinstance(value, tuple):
        return list(value)
    return value


def _refs_in(value) -> List[ElementRef]:
    if isinstance(value, ElementRef):
        return [value]
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, ElementRef)]
    return []


class InMemoryModelStore(ModelStore):
    """Thread-safe, dictionary-backed ModelStore."""

    def __init__(self, config: Optional[StoreConfig] = None):
        super().__init__(config)
        self._lock = threading.RLock()
        self._namespaces: Dict[str, _Namespace] = {}
        self._counters: Dict[Tuple[str, IdType], int] = {}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _namespace(self, document_uri: str, create: bool = False) -> Optional[_Namespace]:
        ns = self._namespaces.get(document_uri)
        if ns is None and create:
            with self._lock:
                ns = self._namespaces.get(document_uri)
                if ns is None:
                    ns = _Namespace()
                    self._namespaces[document_uri] = ns
        return ns

    def _element(self, ref: ElementRef) -> Optional[_Element]:
        ns = self._namespaces.get(ref.document_uri)
        if ns is None:
            return None
        return ns.elements.get(ref.element_id)

    def _bump_counter(self, document_uri: str, element_id: str) -> None:
        counter = generated_counter(element_id)
        if counter is None:
            return
        key = (document_uri, id_type(element_id))
        with self._lock:
            if self._counters.get(key, 0) <= counter:
                self._counters[key] = counter + 1

    def _check_refs(self, ns: _Namespace, document_uri: str, owner: str, value,
                    pending: Optional[set] = None) -> None:
        for ref in _refs_in(value):
            if ref.document_uri != document_uri:
                raise InvalidReference(
                    f"{owner} cannot reference {ref}: references must stay in {document_uri}"
                )
            if ref.element_id not in ns.elements and not (pending and ref.element_id in pending):
                raise InvalidReference(f"{owner} references unknown element {ref}")

    # -------------------------------------------------------------------------
    # ModelStore primitives
    # -------------------------------------------------------------------------

    def create(self, document_uri: str, element_id: str, type_tag: str) -> ElementRef:
        if not element_id:
            raise ValueError("element_id is required")
        ns = self._namespace(document_uri, create=True)
        with ns.lock:
            if element_id in ns.elements:
                raise AlreadyExists(f"{element_id} already exists in {document_uri}")
            ns.elements[element_id] = _Element(type_tag)
        self._bump_counter(document_uri, element_id)
        logger.debug("Created %s %s in %s", type_tag, element_id, document_uri)
        return ElementRef(document_uri, element_id)

    def exists(self, document_uri: str, element_id: str) -> bool:
        ns = self._namespaces.get(document_uri)
        return ns is not None and element_id in ns.elements

    def get_type(self, ref: ElementRef) -> Optional[str]:
        element = self._element(ref)
        return element.type_tag if element else None

    def get_property(self, ref: ElementRef, name: str) -> Optional[PropertyValue]:
        element = self._element(ref)
        if element is None:
            return None
        return _thaw(element.properties.get(name))

    def set_property(self, ref: ElementRef, name: str, value: Optional[PropertyValue]) -> None:
        ns = self._namespace(ref.document_uri)
        if ns is None:
            raise InvalidReference(f"Unknown element {ref}")
        with ns.lock:
            element = ns.elements.get(ref.element_id)
            if element is None:
                raise InvalidReference(f"Unknown element {ref}")
            self._check_refs(ns, ref.document_uri, f"{ref.element_id}.{name}", value)
            props = dict(element.properties)
            if value is None:
                props.pop(name, None)
            else:
                props[name] = _freeze(value)
            element.properties = props

    def property_names(self, ref: ElementRef) -> List[str]:
        element = self._element(ref)
        return list(element.properties) if element else []

    def add_to_collection(self, ref: ElementRef, name: str, value: PropertyValue) -> None:
        ns = self._namespace(ref.document_uri)
        if ns is None:
            raise InvalidReference(f"Unknown element {ref}")
        with ns.lock:
            element = ns.elements.get(ref.element_id)
            if element is None:
                raise InvalidReference(f"Unknown element {ref}")
            self._check_refs(ns, ref.document_uri, f"{ref.element_id}.{name}", value)
            current = element.properties.get(name, ())
            if not isinstance(current, tuple):
                current = (current,)
            props = dict(element.properties)
            props[name] = current + (value,)
            element.properties = props

    def delete(self, ref: ElementRef) -> None:
        ns = self._namespace(ref.document_uri)
        if ns is None:
            raise InvalidReference(f"Unknown element {ref}")
        with ns.lock:
            if ref.element_id not in ns.elements:
                raise InvalidReference(f"Unknown element {ref}")
            del ns.elements[ref.element_id]
        logger.debug("Deleted %s", ref)

    def list_elements(self, document_uri: str) -> List[ElementRef]:
        ns = self._namespace(document_uri)
        if ns is None:
            return []
        with ns.lock:
            return [ElementRef(document_uri, element_id) for element_id in ns.elements]

    def document_uris(self) -> List[str]:
        with self._lock:
            return list(self._namespaces)

    def document_exists(self, document_uri: str) -> bool:
        return document_uri in self._namespaces

    def next_id(self, document_uri: str, id_type: IdType) -> str:
        ns = self._namespace(document_uri)
        with self._lock:
            key = (document_uri, id_type)
            counter = self._counters.get(key, 0)
            candidate = generated_id(id_type, counter)
            while ns is not None and candidate in ns.elements:
                counter += 1
                candidate = generated_id(id_type, counter)
            self._counters[key] = counter + 1
            return candidate

    def register(self, document_uri: str, records: Sequence[ElementRecord],
                 new_document: bool = False) -> List[ElementRef]:
        published = False
        if document_uri not in self._namespaces:
            # Build the namespace privately, then publish it in one step
            fresh = _Namespace()
            self._fill(fresh, document_uri, records)
            with self._lock:
                if document_uri not in self._namespaces:
                    self._namespaces[document_uri] = fresh
                    published = True

        if not published:
            if new_document:
                raise AlreadyExists(f"Document {document_uri} already exists")
            self._fill(self._namespaces[document_uri], document_uri, records)

        for record in records:
            self._bump_counter(document_uri, record.element_id)
        logger.debug("Registered %d elements in %s", len(records), document_uri)
        return [ElementRef(document_uri, r.element_id) for r in records]

    def _fill(self, ns: _Namespace, document_uri: str, records: Sequence[ElementRecord]) -> None:
        with ns.lock:
            pending = set()
            for record in records:
                if not record.element_id:
                    raise ValueError("Records need an element_id")
                if record.element_id in ns.elements or record.element_id in pending:
                    raise AlreadyExists(f"{record.element_id} already exists in {document_uri}")
                pending.add(record.element_id)
            for record in records:
                for name, value in record.properties.items():
                    self._check_refs(ns, document_uri, f"{record.element_id}.{name}", value, pending)

            # All checks passed: nothing below can fail
            staged = {
                r.element_id: _Element(
                    r.type_tag,
                    {k: _freeze(v) for k, v in r.properties.items() if v is not None},
                )
                for r in records
            }
            ns.elements.update(staged)

    def records(self, document_uri: str) -> List[ElementRecord]:
        ns = self._namespace(document_uri)
        if ns is None:
            return []
        with ns.lock:
            return [
                ElementRecord(element_id, element.type_tag,
                              {k: _thaw(v) for k, v in element.properties.items()})
                for element_id, element in ns.elements.items()
            ]
