"""
Tests for core model objects.

These tests verify:
    - ElementRef identity and formatting
    - Checksum validation at construction
    - FileConfig / PackageConfig required fields
"""

import pytest
from bomstore.model import (
    ElementRef,
    ElementRecord,
    ElementType,
    Checksum,
    ChecksumAlgorithm,
    CreationInfo,
    FileConfig,
    PackageConfig,
    checksum_problem,
)


SHA1 = "2fd4e1c67a2d28fced849ee1bb76e7391b93eb12"
URI = "http://spdx.org/spdxdocs/test"


class TestElementRef:
    """Test element addressing."""

    def test_equality_by_uri_and_id(self):
        assert ElementRef(URI, "SPDXRef-1") == ElementRef(URI, "SPDXRef-1")
        assert ElementRef(URI, "SPDXRef-1") != ElementRef(URI + "2", "SPDXRef-1")

    def test_hashable(self):
        refs = {ElementRef(URI, "SPDXRef-1"), ElementRef(URI, "SPDXRef-1")}
        assert len(refs) == 1

    def test_str(self):
        assert str(ElementRef(URI, "SPDXRef-1")) == f"{URI}#SPDXRef-1"

    def test_immutable(self):
        ref = ElementRef(URI, "SPDXRef-1")
        with pytest.raises(AttributeError):
            ref.element_id = "SPDXRef-2"


class TestChecksum:
    """Test checksum validation."""

    def test_valid_sha1(self):
        checksum = Checksum(ChecksumAlgorithm.SHA1, SHA1)
        assert checksum.value == SHA1

    def test_wrong_length(self):
        with pytest.raises(ValueError, match="40 hex characters"):
            Checksum(ChecksumAlgorithm.SHA1, SHA1[:-1])

    def test_not_hex(self):
        with pytest.raises(ValueError, match="not a hex string"):
            Checksum(ChecksumAlgorithm.MD5, "z" * 32)

    def test_algorithm_must_be_enum(self):
        with pytest.raises(ValueError):
            Checksum("SHA1", SHA1)

    def test_digest_lengths(self):
        assert ChecksumAlgorithm.SHA256.digest_length == 64
        assert ChecksumAlgorithm.ADLER32.digest_length == 8
        assert ChecksumAlgorithm.BLAKE2b_512.digest_length == 128

    def test_problem_for_unknown_algorithm(self):
        assert "unknown checksum algorithm" in checksum_problem("CRC32", "abcd")

    def test_no_problem_for_valid_digest(self):
        assert checksum_problem("SHA3-256", "a" * 64) is None


class TestConfigs:
    """Test creation configs."""

    def test_file_config(self):
        lic = ElementRef(URI, "__anon__0")
        config = FileConfig(
            element_id="SPDXRef-44",
            name="./myfile/name",
            license_concluded=lic,
            checksum=Checksum(ChecksumAlgorithm.SHA1, SHA1),
        )
        assert config.copyright_text == "NOASSERTION"
        assert config.license_info_in_files == []

    def test_file_config_requires_spdx_id(self):
        with pytest.raises(ValueError, match="Invalid SPDX ID"):
            FileConfig(
                element_id="myfile",
                name="./myfile/name",
                license_concluded=ElementRef(URI, "__anon__0"),
                checksum=Checksum(ChecksumAlgorithm.SHA1, SHA1),
            )

    def test_file_config_requires_checksum(self):
        with pytest.raises(ValueError, match="checksum"):
            FileConfig(
                element_id="SPDXRef-1",
                name="./a",
                license_concluded=ElementRef(URI, "__anon__0"),
                checksum=None,
            )

    def test_file_config_requires_name(self):
        with pytest.raises(ValueError):
            FileConfig(
                element_id="SPDXRef-1",
                name="",
                license_concluded=ElementRef(URI, "__anon__0"),
                checksum=Checksum(ChecksumAlgorithm.SHA1, SHA1),
            )

    def test_package_config_defaults(self):
        config = PackageConfig(element_id="SPDXRef-pkg", name="pkg")
        assert config.download_location == "NOASSERTION"
        assert config.checksums == []
        assert config.files_analyzed is False

    def test_package_config_requires_name(self):
        with pytest.raises(ValueError):
            PackageConfig(element_id="SPDXRef-pkg", name="")


class TestValues:
    """Test plain value holders."""

    def test_creation_info(self):
        info = CreationInfo(creators=["Tool: x"], created="2023-01-01T00:00:00Z")
        assert info.comment is None

    def test_record_defaults(self):
        record = ElementRecord("SPDXRef-1", ElementType.FILE)
        assert record.properties == {}

    def test_all_types_listed(self):
        assert ElementType.LICENSE in ElementType.ALL
        assert len(set(ElementType.ALL)) == len(ElementType.ALL)
