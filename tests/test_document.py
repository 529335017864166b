"""
Tests for the SpdxDocument facade.

These tests verify:
    - Creating and opening documents
    - Typed getters and setters round-trip through the store
    - Licenses from strings are canonical and reused
    - Files, packages and relationships are registered atomically
    - copy_from fills a fresh document in another store
"""

import datetime

import pytest
from bomstore.backends import InMemoryModelStore
from bomstore.document import SpdxDocument, spdx_timestamp
from bomstore.errors import AlreadyExists, DestinationConflict, InvalidReference, MalformedExpression
from bomstore.expressions import Disjunction, SimpleLicense
from bomstore.model import (
    Checksum,
    ChecksumAlgorithm,
    CreationInfo,
    ElementRef,
    ElementType,
    FileConfig,
    PackageConfig,
    Prop,
    RelationshipType,
)


URI = "http://spdx.org/spdxdocs/facade"
SHA1 = "2fd4e1c67a2d28fced849ee1bb76e7391b93eb12"


@pytest.fixture
def doc():
    return SpdxDocument(InMemoryModelStore(), URI, create=True)


def make_file(doc: SpdxDocument, element_id: str = "SPDXRef-1", license: str = "MIT") -> ElementRef:
    lic = doc.license(license)
    return doc.create_file(FileConfig(
        element_id=element_id,
        name="./a.c",
        license_concluded=lic,
        license_info_in_files=[lic],
        checksum=Checksum(ChecksumAlgorithm.SHA1, SHA1),
    ))


class TestCreateOpen:
    """Test document lifecycle."""

    def test_create(self, doc):
        assert doc.store.get_type(doc.ref) == ElementType.DOCUMENT
        assert doc.ref == ElementRef(URI, "SPDXRef-DOCUMENT")

    def test_create_twice(self, doc):
        with pytest.raises(AlreadyExists):
            SpdxDocument(doc.store, URI, create=True)

    def test_open_existing(self, doc):
        doc.set_name("Named")
        assert SpdxDocument(doc.store, URI).name == "Named"

    def test_open_missing(self):
        with pytest.raises(InvalidReference):
            SpdxDocument(InMemoryModelStore(), URI)


class TestProperties:
    """Test typed accessors."""

    def test_scalars(self, doc):
        doc.set_spec_version("SPDX-2.3")
        doc.set_name("My Document")
        doc.set_comment("hello")
        assert doc.spec_version == "SPDX-2.3"
        assert doc.name == "My Document"
        assert doc.comment == "hello"
        doc.set_comment(None)
        assert doc.comment is None

    def test_creation_info(self, doc):
        doc.set_creation_info(CreationInfo(["Tool: Sample App"], "2023-01-01T00:00:00Z"))
        info = doc.creation_info
        assert info.creators == ["Tool: Sample App"]
        assert info.created == "2023-01-01T00:00:00Z"

    def test_creation_info_unset(self, doc):
        assert doc.creation_info is None

    def test_creation_info_element(self, doc):
        ref = doc.create_creation_info(["Person: Jane"], "2023-01-01T00:00:00Z", comment="first")
        doc.set_creation_info(ref)
        assert doc.store.get_type(ref) == ElementType.CREATION_INFO
        assert doc.creation_info.comment == "first"

    def test_data_license(self, doc):
        doc.set_data_license("CC0-1.0")
        assert doc.data_license == SimpleLicense("CC0-1.0")


class TestLicenses:
    """Test licenses from strings."""

    def test_license_is_canonical(self, doc):
        ref = doc.license("(MIT  OR Apache-2.0)")
        assert doc.store.get_property(ref, Prop.LICENSE_EXPRESSION) == "MIT OR Apache-2.0"
        assert doc.license_expression(ref) == Disjunction(SimpleLicense("MIT"), SimpleLicense("Apache-2.0"))

    def test_same_expression_reuses_element(self, doc):
        assert doc.license("MIT") == doc.license("(MIT)")

    def test_different_expressions(self, doc):
        assert doc.license("MIT") != doc.license("Apache-2.0")

    def test_malformed_license(self, doc):
        with pytest.raises(MalformedExpression):
            doc.license("(MIT OR")

    def test_license_from_tree(self, doc):
        ref = doc.license(SimpleLicense("MIT"))
        assert doc.license("MIT") == ref

    def test_extracted_license(self, doc):
        ref = doc.create_extracted_license("LicenseRef-custom", "Custom terms", name="Custom")
        assert doc.store.get_type(ref) == ElementType.EXTRACTED_LICENSE
        assert doc.store.get_property(ref, Prop.EXTRACTED_TEXT) == "Custom terms"

    def test_extracted_license_needs_license_ref_id(self, doc):
        with pytest.raises(ValueError):
            doc.create_extracted_license("SPDXRef-custom", "text")


class TestElements:
    """Test creation of files, packages, checksums and relationships."""

    def test_checksum(self, doc):
        ref = doc.create_checksum(ChecksumAlgorithm.SHA1, SHA1)
        assert doc.checksum(ref) == Checksum(ChecksumAlgorithm.SHA1, SHA1)

    def test_invalid_checksum(self, doc):
        with pytest.raises(ValueError):
            doc.create_checksum(ChecksumAlgorithm.SHA256, SHA1)

    def test_create_file(self, doc):
        file_ref = make_file(doc)
        store = doc.store
        assert store.get_type(file_ref) == ElementType.FILE
        assert store.get_property(file_ref, Prop.FILE_NAME) == "./a.c"
        checksums = store.get_property(file_ref, Prop.CHECKSUMS)
        assert doc.checksum(checksums[0]).value == SHA1
        assert store.get_property(file_ref, Prop.LICENSE_INFO_IN_FILES) == [doc.license("MIT")]
        assert store.get_property(file_ref, Prop.COPYRIGHT_TEXT) == "NOASSERTION"

    def test_duplicate_file_id(self, doc):
        make_file(doc)
        count = len(doc.store.list_elements(URI))
        with pytest.raises(AlreadyExists):
            make_file(doc)
        # Neither the file nor its checksum was added
        assert len(doc.store.list_elements(URI)) == count

    def test_file_license_from_other_document(self, doc):
        other = SpdxDocument(doc.store, "http://spdx.org/spdxdocs/other", create=True)
        foreign = other.license("MIT")
        with pytest.raises(InvalidReference):
            doc.create_file(FileConfig(
                element_id="SPDXRef-1",
                name="./a.c",
                license_concluded=foreign,
                checksum=Checksum(ChecksumAlgorithm.SHA1, SHA1),
            ))

    def test_create_package_with_files(self, doc):
        file_ref = make_file(doc)
        pkg = doc.create_package(PackageConfig(
            element_id="SPDXRef-pkg",
            name="pkg",
            version_info="1.0",
            license_declared=doc.license("MIT"),
            checksums=[Checksum(ChecksumAlgorithm.SHA1, SHA1)],
        ))
        doc.add_file_to_package(pkg, file_ref)
        store = doc.store
        assert store.get_property(pkg, Prop.VERSION_INFO) == "1.0"
        assert store.get_property(pkg, Prop.HAS_FILES) == [file_ref]
        assert store.get_property(pkg, Prop.FILES_ANALYZED) is False
        assert store.get_property(pkg, Prop.LICENSE_CONCLUDED) is None

    def test_relationship(self, doc):
        file_ref = make_file(doc)
        rel = doc.create_relationship(doc.ref, RelationshipType.DESCRIBES, file_ref)
        store = doc.store
        assert store.get_property(doc.ref, Prop.RELATIONSHIPS) == [rel]
        assert store.get_property(rel, Prop.RELATED_SPDX_ELEMENT) == file_ref
        assert store.get_property(rel, Prop.RELATIONSHIP_TYPE) == "DESCRIBES"

    def test_describes(self, doc):
        a = make_file(doc, "SPDXRef-a")
        b = make_file(doc, "SPDXRef-b")
        doc.add_describes(a)
        doc.add_describes(b)
        assert doc.describes == [a, b]
        doc.remove_describes(a)
        assert doc.describes == [b]


def build_complete(doc: SpdxDocument) -> SpdxDocument:
    doc.set_creation_info(CreationInfo(["Tool: test"], "2023-01-01T00:00:00Z"))
    doc.set_spec_version("SPDX-2.3")
    doc.set_name("Complete")
    doc.set_data_license("CC0-1.0")
    doc.add_describes(make_file(doc))
    return doc


class TestWholeDocument:
    """Test verify and copy_from."""

    def test_verify_complete(self, doc):
        assert build_complete(doc).verify() == []

    def test_verify_incomplete(self, doc):
        warnings = doc.verify()
        assert len(warnings) == 4

    def test_copy_from(self, doc):
        build_complete(doc)
        target = SpdxDocument(InMemoryModelStore(), URI, create=True)

        target.copy_from(doc)

        assert target.name == "Complete"
        assert target.creation_info == doc.creation_info
        assert target.verify() == []
        assert target.store.records(URI) == doc.store.records(URI)
        assert target.serialize() == doc.serialize()

    def test_copy_from_into_non_empty(self, doc):
        build_complete(doc)
        target = SpdxDocument(InMemoryModelStore(), URI, create=True)
        make_file(target)
        with pytest.raises(DestinationConflict):
            target.copy_from(doc)


def test_spdx_timestamp_format():
    when = datetime.datetime(2023, 5, 6, 7, 8, 9, tzinfo=datetime.timezone.utc)
    assert spdx_timestamp(when) == "2023-05-06T07:08:09Z"
    assert len(spdx_timestamp()) == len("2023-05-06T07:08:09Z")
