"""
Example document builder.

Builds a small, valid document: one tool creator, the CC0-1.0 data
license, and a single Apache-2.0 file with a SHA1 checksum that the
document describes.
"""
from typing import Optional

from bomstore.document import SpdxDocument, spdx_timestamp
from bomstore.identifiers import SPDX_ELEMENT_REF_PRENUM
from bomstore.model import Checksum, ChecksumAlgorithm, CreationInfo, FileConfig
from bomstore.store import ModelStore


EXAMPLE_DOCUMENT_URI = "http://spdx.org/spdxdocs/spdx-example2-444504E0-4F89-41D3-9A0C-0305E82CCCCC"
EXAMPLE_FILE_ID = SPDX_ELEMENT_REF_PRENUM + "44"
EXAMPLE_SHA1 = "2fd4e1c67a2d28fced849ee1bb76e7391b93eb12"


def build_example_document(store: ModelStore, document_uri: str = EXAMPLE_DOCUMENT_URI,
                           created: Optional[str] = None) -> SpdxDocument:
    doc = SpdxDocument(store, document_uri, create=True)

    doc.set_creation_info(CreationInfo(
        creators=["Tool: Sample App"],
        created=created or spdx_timestamp(),
    ))
    doc.set_spec_version(store.config.spec_version)
    doc.set_name("My Document")
    doc.set_data_license("CC0-1.0")

    # The same License element is both concluded and found in the file
    apache = doc.license("Apache-2.0")
    file_ref = doc.create_file(FileConfig(
        element_id=EXAMPLE_FILE_ID,
        name="./myfile/name",
        license_concluded=apache,
        license_info_in_files=[apache],
        copyright_text="Copyright me, 2023",
        checksum=Checksum(ChecksumAlgorithm.SHA1, EXAMPLE_SHA1),
    ))
    doc.add_describes(file_ref)
    return doc
