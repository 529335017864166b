"""
Copy Manager: clone a subgraph from one ModelStore into another.

The subgraph is everything reachable from a root element through
reference-valued properties. Shared sub-elements (one license used by
many files) are copied once; cycles terminate.

Identity rules:
    - Named elements (SPDXRef-..., LicenseRef-...) keep their ID under
      the destination namespace
    - Anonymous elements get fresh IDs allocated by the destination store
    - Copying never overwrites: an occupied destination ID aborts the
      whole copy before anything is written

Cross-store movement goes through here, never backend-to-backend.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from bomstore.errors import AlreadyExists, DestinationConflict, InvalidReference
from bomstore.identifiers import IdType, is_anonymous
from bomstore.model import ElementRecord, ElementRef
from bomstore.store import ModelStore


logger = logging.getLogger(__name__)


class _CopyPlan:
    """
    One copy operation: a memo of visited elements plus the records to write.

    The memo maps (source URI, source ID) to the destination reference.
    Planning runs in two steps: collect() walks the subgraph once, then
    allocate() hands out destination IDs in the source's creation order,
    so the copies keep the order (and, in a fresh namespace, the
    anonymous numbering) of their originals.
    """

    def __init__(self, source: ModelStore, dest: ModelStore, dest_uri: str):
        self.source = source
        self.dest = dest
        self.dest_uri = dest_uri
        self.memo: Dict[Tuple[str, str], Optional[ElementRef]] = {}
        self.pending: List[ElementRef] = []
        self.records: List[ElementRecord] = []

    def collect(self, value: Any) -> None:
        stack = list(_refs(value))
        while stack:
            ref = stack.pop()
            key = (ref.document_uri, ref.element_id)
            if key in self.memo:
                continue
            if self.source.get_type(ref) is None:
                raise InvalidReference(f"Cannot copy missing element {ref}")
            self.memo[key] = None
            self.pending.append(ref)
            for prop in self.source.get_properties(ref).values():
                stack.extend(_refs(prop))

    def allocate(self) -> None:
        positions: Dict[str, Dict[str, int]] = {}

        def position(ref: ElementRef) -> int:
            if ref.document_uri not in positions:
                positions[ref.document_uri] = {
                    r.element_id: i for i, r in enumerate(self.source.list_elements(ref.document_uri))
                }
            return positions[ref.document_uri].get(ref.element_id, 0)

        ordered = sorted(self.pending, key=position)
        for ref in ordered:
            if is_anonymous(ref.element_id):
                dest_id = self.dest.next_id(self.dest_uri, IdType.ANONYMOUS)
            else:
                dest_id = ref.element_id
                if self.dest.exists(self.dest_uri, dest_id):
                    raise DestinationConflict(f"{dest_id} already exists in {self.dest_uri}")
            self.memo[(ref.document_uri, ref.element_id)] = ElementRef(self.dest_uri, dest_id)

        for ref in ordered:
            record = ElementRecord(self.map_value(ref).element_id, self.source.get_type(ref))
            for name, value in self.source.get_properties(ref).items():
                record.properties[name] = self.map_value(value)
            self.records.append(record)

    def map_value(self, value: Any) -> Any:
        if isinstance(value, ElementRef):
            return self.memo[(value.document_uri, value.element_id)]
        if isinstance(value, list):
            return [self.map_value(v) for v in value]
        return value

    def commit(self) -> None:
        try:
            self.dest.register(self.dest_uri, self.records)
        except AlreadyExists as e:
            # Lost a race with another writer after planning
            raise DestinationConflict(str(e)) from e


def _refs(value: Any) -> List[ElementRef]:
    if isinstance(value, ElementRef):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, ElementRef)]
    return []


class CopyManager:
    """
    Copies elements between stores.

    Each call uses its own memo: copying the same root twice into the
    same destination fails with DestinationConflict.
    """

    def copy(self, source_store: ModelStore, source_ref: ElementRef,
             dest_store: ModelStore, dest_document_uri: str) -> ElementRef:
        """
        Deep-copy the subgraph rooted at `source_ref`.

        Args:
            source_store: Store holding the source element
            source_ref: Root of the subgraph
            dest_store: Store to copy into (may be the same store)
            dest_document_uri: Namespace to create the copies in

        Returns:
            Reference to the copy of the root in `dest_store`

        Raises:
            DestinationConflict: A named element already exists at its
                destination ID; the destination is left unchanged
            InvalidReference: The source graph has a dangling reference
        """
        plan = _CopyPlan(source_store, dest_store, dest_document_uri)
        plan.collect(source_ref)
        plan.allocate()
        plan.commit()
        dest_ref = plan.map_value(source_ref)
        logger.debug("Copied %d elements from %s to %s",
                     len(plan.records), source_ref, dest_document_uri)
        return dest_ref

    def copy_into(self, source_store: ModelStore, source_ref: ElementRef,
                  dest_store: ModelStore, dest_ref: ElementRef) -> None:
        """
        Copy the properties of `source_ref` onto an existing element.

        Everything the source references is copied as in copy(); the
        existing destination element stands in for the source root, so
        cycles back to the root resolve to `dest_ref`.

        Raises:
            InvalidReference: `dest_ref` does not exist, or the source
                graph has a dangling reference
            DestinationConflict: As in copy()
        """
        if not dest_store.exists(dest_ref.document_uri, dest_ref.element_id):
            raise InvalidReference(f"Copy target {dest_ref} does not exist")
        if source_store.get_type(source_ref) is None:
            raise InvalidReference(f"Cannot copy missing element {source_ref}")

        plan = _CopyPlan(source_store, dest_store, dest_ref.document_uri)
        plan.memo[(source_ref.document_uri, source_ref.element_id)] = dest_ref
        properties = source_store.get_properties(source_ref)
        for value in properties.values():
            plan.collect(value)
        plan.allocate()
        mapped = {name: plan.map_value(value) for name, value in properties.items()}
        plan.commit()
        for name, value in mapped.items():
            dest_store.set_property(dest_ref, name, value)
        logger.debug("Copied %s onto %s (%d new elements)",
                     source_ref, dest_ref, len(plan.records))
