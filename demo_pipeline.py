#!/usr/bin/env python3
"""
Pipeline Demo: build → verify → copy → serialize → deserialize

Shows the full workflow:
1. Build a document in an in-memory store
2. Verify it
3. Copy it into a second store
4. Serialize it in every format
5. Read one serialization back and list its creators
"""

from bomstore.backends import InMemoryModelStore
from bomstore.document import SpdxDocument
from bomstore.examples import build_example_document
from bomstore.serialization import Format, Verbosity


def main():
    print("=" * 80)
    print("PIPELINE DEMO: Build → Verify → Copy → Serialize → Deserialize")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Build
    # =========================================================================
    print("\n1. BUILDING DOCUMENT...")
    work_store = InMemoryModelStore()
    doc = build_example_document(work_store)
    print(f"   ✓ Created: {doc.document_uri}")
    print(f"   ✓ Elements: {len(work_store.list_elements(doc.document_uri))}")

    # =========================================================================
    # STEP 2: Verify
    # =========================================================================
    print("\n2. VERIFYING...")
    warnings = doc.verify()
    if warnings:
        print(f"   Warnings ({len(warnings)}):")
        for warning in warnings:
            print(f"      - {warning}")
    else:
        print("   ✓ Document is valid")

    # =========================================================================
    # STEP 3: Copy
    # =========================================================================
    print("\n3. COPYING INTO A SECOND STORE...")
    out_store = InMemoryModelStore()
    copy = SpdxDocument(out_store, doc.document_uri, create=True)
    copy.copy_from(doc)
    print(f"   ✓ Copied {len(out_store.list_elements(copy.document_uri))} elements")

    # =========================================================================
    # STEP 4: Serialize
    # =========================================================================
    print("\n4. SERIALIZING...")
    outputs = {}
    for fmt in Format:
        for verbosity in Verbosity:
            data = out_store.serialize(copy.document_uri, format=fmt, verbosity=verbosity)
            outputs[(fmt, verbosity)] = data
            print(f"   ✓ {fmt.value:<12} {verbosity.value:<8} {len(data):>6} bytes")

    # =========================================================================
    # STEP 5: Deserialize
    # =========================================================================
    print("\n5. READING BACK (yaml, compact)...")
    read_store = InMemoryModelStore()
    uri = read_store.deserialize(outputs[(Format.YAML, Verbosity.COMPACT)])
    reread = SpdxDocument(read_store, uri)
    print(f"   ✓ Deserialized {uri}")
    print("   Creators:")
    for creator in reread.creation_info.creators:
        print(f"      {creator}")

    print("\n" + "=" * 80)
    print("Sample JSON output:")
    print("-" * 80)
    print(outputs[(Format.JSON_PRETTY, Verbosity.COMPACT)].decode("utf-8"))


if __name__ == "__main__":
    main()
