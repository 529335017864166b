"""
bomstore: a document model store for bill-of-materials records.

A document is a graph of typed elements (documents, files, packages,
licenses, checksums, relationships) held in a ModelStore and addressed
by (document URI, element ID).

ARCHITECTURAL GUARANTEE:
------------------------
Storage backends know nothing about:
    - Wire formats (JSON, YAML, XML live in serialization)
    - License grammar (license_parser)
    - Validation rules (verifier)

All mutation goes through name/value property pairs.
Typed convenience lives in bomstore.document, above the store.
"""

__version__ = "0.1.0"
