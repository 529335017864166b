"""
Tests for the bomstore command line.

These tests verify:
    - convert reads, verifies and writes a document
    - demo builds and writes the example document
    - I/O and parse failures exit with 1 and name their category
"""

import json

import pytest
from bomstore.cli import create_parser, format_warnings, main


SHA1 = "2fd4e1c67a2d28fced849ee1bb76e7391b93eb12"
URI = "http://spdx.org/spdxdocs/cli"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("FORMAT", "VERBOSITY", "SPEC_VERSION", "LOG_LEVEL"):
        monkeypatch.delenv(f"BOMSTORE_{key}", raising=False)


def write_input(tmp_path, **changes):
    doc = {
        "SPDXID": "SPDXRef-DOCUMENT",
        "documentNamespace": URI,
        "specVersion": "SPDX-2.3",
        "name": "CLI",
        "dataLicense": "CC0-1.0",
        "creationInfo": {"creators": ["Tool: cli-test"], "created": "2023-01-01T00:00:00Z"},
        "documentDescribes": ["SPDXRef-File"],
        "elements": [{
            "SPDXID": "SPDXRef-File",
            "type": "File",
            "fileName": "./a.c",
            "checksums": [{"algorithm": "SHA1", "checksumValue": SHA1}],
            "licenseConcluded": "MIT",
        }],
    }
    doc.update(changes)
    path = tmp_path / "in.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


class TestConvert:
    """Test the convert command."""

    def test_json_to_yaml(self, tmp_path, capsys):
        source = write_input(tmp_path)
        target = tmp_path / "out.yaml"

        assert main(["convert", str(source), str(target)]) == 0

        out = capsys.readouterr().out
        assert f"Successfully deserialized {URI}" in out
        assert "Tool: cli-test" in out
        assert "Document is valid" in out
        assert target.read_text(encoding="utf-8").startswith("SPDXID:")

    def test_explicit_format_and_verbosity(self, tmp_path):
        source = write_input(tmp_path)
        target = tmp_path / "out.data"

        assert main(["convert", "--format", "json", "--verbosity", "full", str(source), str(target)]) == 0

        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["documentDescribes"] == [{"ref": "SPDXRef-File"}]

    def test_warnings_do_not_fail(self, tmp_path, capsys):
        source = write_input(tmp_path, dataLicense="MIT")
        assert main(["convert", str(source), str(tmp_path / "out.json")]) == 0
        assert "Data license must be CC0-1.0" in capsys.readouterr().out

    def test_missing_input_is_io_failure(self, tmp_path, capsys):
        code = main(["convert", str(tmp_path / "absent.json"), str(tmp_path / "out.json")])
        assert code == 1
        assert capsys.readouterr().out.startswith("IOFailure: ")

    def test_malformed_input_is_parse_failure(self, tmp_path, capsys):
        source = tmp_path / "in.json"
        source.write_text("{broken", encoding="utf-8")
        code = main(["convert", str(source), str(tmp_path / "out.json")])
        assert code == 1
        assert capsys.readouterr().out.startswith("ParseFailure: ")
        assert not (tmp_path / "out.json").exists()

    def test_bad_license_is_parse_failure(self, tmp_path, capsys):
        source = write_input(tmp_path, dataLicense="(CC0-1.0")
        assert main(["convert", str(source), str(tmp_path / "out.json")]) == 1
        assert "Unbalanced parenthesis" in capsys.readouterr().out


class TestDemo:
    """Test the demo command."""

    def test_demo_writes_valid_document(self, tmp_path, capsys):
        target = tmp_path / "my-doc.spdx.json"

        assert main(["demo", str(target)]) == 0

        out = capsys.readouterr().out
        assert "Document is valid" in out
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["name"] == "My Document"
        file_entry = next(e for e in data["elements"] if e["SPDXID"] == "SPDXRef-44")
        assert file_entry["fileName"] == "./myfile/name"

    def test_demo_output_converts_back(self, tmp_path):
        first = tmp_path / "demo.xml"
        second = tmp_path / "demo.json"
        assert main(["demo", str(first)]) == 0
        assert main(["convert", str(first), str(second)]) == 0
        assert json.loads(second.read_text(encoding="utf-8"))["name"] == "My Document"


class TestConfiguration:
    """Test config file and environment handling."""

    def test_config_file(self, tmp_path):
        config = tmp_path / "bomstore.yaml"
        config.write_text("format: yaml\n", encoding="utf-8")
        target = tmp_path / "out.spdx"

        assert main(["--config", str(config), "demo", str(target)]) == 0
        assert target.read_text(encoding="utf-8").startswith("SPDXID:")

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BOMSTORE_FORMAT", "xml")
        target = tmp_path / "out.spdx"
        assert main(["demo", str(target)]) == 0
        assert target.read_bytes().startswith(b"<?xml")

    def test_bad_config(self, tmp_path, capsys):
        config = tmp_path / "bomstore.yaml"
        config.write_text("verbosity: loud\n", encoding="utf-8")
        assert main(["--config", str(config), "demo", str(tmp_path / "out.json")]) == 1
        assert capsys.readouterr().out.startswith("ConfigurationError: ")


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "convert" in capsys.readouterr().out


def test_parser_rejects_unknown_format():
    with pytest.raises(SystemExit):
        create_parser().parse_args(["demo", "--format", "toml", "out.json"])


def test_format_warnings():
    assert format_warnings([]) == "Document is valid"
    assert format_warnings(["a", "b"]).splitlines() == [
        "Verification failed for the following reason(s):",
        "  a",
        "  b",
    ]
