"""Tests for preset manifests and document stores"""

import json
from pathlib import Path

import pytest

from conftest import build_pdf
from docsign.models import SigningSession
from docsign.services.document_store import (
    FileSystemDocumentStore,
    InlineDocumentStore,
    get_document_store,
)
from docsign.services.preset_service import PresetService
from docsign.utils.exceptions import FileOperationError

SIGNATURE = {"id": "sig-1", "type": "signature", "page": 1, "xRatio": 0.1, "yRatio": 0.8, "width": 150, "height": 50}


def _write_manifest(directory: Path, entries) -> Path:
    manifest = directory / "presets.json"
    manifest.write_text(json.dumps(entries))
    return manifest


def test_manifest_parsing(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "nda.pdf").write_bytes(build_pdf())
    manifest = _write_manifest(tmp_path, {
        "presets": [
            {
                "id": "nda",
                "name": "Non-Disclosure Agreement",
                "description": "NDA for contractors",
                "pdf_path": "docs/nda.pdf",
                "original_filename": "NDA.pdf",
                "fields": [SIGNATURE],
            },
            {"id": "broken", "pdf_path": "docs/nda.pdf", "fields": [{**SIGNATURE, "page": 0}]},
            {"name": "no id", "pdf_path": "docs/nda.pdf"},
            "not-an-object",
        ]
    })

    service = PresetService(str(manifest))
    presets = service.list_presets()
    assert [p.id for p in presets] == ["nda", "broken"]

    nda = service.get_preset("nda")
    assert nda.pdf_path == tmp_path / "docs" / "nda.pdf"
    assert nda.original_filename == "NDA.pdf"
    assert [f.key for f in nda.fields] == ["sig-1"]
    assert service.load_pdf(nda).startswith(b"%PDF")

    assert service.get_preset("broken").fields == []
    assert service.get_preset("missing") is None


def test_bare_list_manifest_and_availability(tmp_path):
    (tmp_path / "here.pdf").write_bytes(build_pdf())
    manifest = _write_manifest(tmp_path, [
        {"id": "here", "pdf_path": "here.pdf"},
        {"id": "gone", "pdf_path": "gone.pdf"},
    ])
    service = PresetService(str(manifest))

    assert [p.id for p in service.list_available()] == ["here"]
    with pytest.raises(FileOperationError):
        service.load_pdf(service.get_preset("gone"))


def test_missing_or_corrupt_manifest(tmp_path):
    assert PresetService(str(tmp_path / "nope.json")).list_presets() == []
    (tmp_path / "bad.json").write_text("{oops")
    assert PresetService(str(tmp_path / "bad.json")).list_presets() == []


def test_inline_store_round_trip():
    store = InlineDocumentStore()
    session = SigningSession(token="tok", original_filename="a.pdf", fields=[])

    for column, value in store.put_original("tok", b"%PDF-original").items():
        setattr(session, column, value)
    assert store.get_original(session) == b"%PDF-original"
    assert store.get_signed(session) is None

    for column, value in store.put_signed("tok", b"%PDF-signed").items():
        setattr(session, column, value)
    assert store.get_signed(session) == b"%PDF-signed"


def test_filesystem_store_writes_and_discards(tmp_path):
    store = FileSystemDocumentStore(root=str(tmp_path))
    session = SigningSession(token="tok", original_filename="a.pdf", fields=[])

    original = store.put_original("tok", b"%PDF-original")
    assert original["document_base64"] is None
    for column, value in original.items():
        setattr(session, column, value)
    assert store.get_original(session) == b"%PDF-original"

    first = store.put_signed("tok", b"%PDF-one")
    second = store.put_signed("tok", b"%PDF-two")
    assert first["signed_document_path"] != second["signed_document_path"]

    store.discard(second)
    assert not Path(second["signed_document_path"]).exists()
    assert Path(first["signed_document_path"]).exists()

    session.signed_document_path = first["signed_document_path"]
    assert store.get_signed(session) == b"%PDF-one"

    store.delete_all(session)
    assert list((tmp_path / "signing").iterdir()) == []


def test_filesystem_store_reads_inline_rows(tmp_path):
    inline = InlineDocumentStore()
    session = SigningSession(token="tok", original_filename="a.pdf", fields=[], **inline.put_original("tok", b"%PDF"))
    assert FileSystemDocumentStore(root=str(tmp_path)).get_original(session) == b"%PDF"


def test_missing_file_raises_file_operation_error(tmp_path):
    session = SigningSession(token="tok", original_filename="a.pdf", fields=[], document_path=str(tmp_path / "x.pdf"))
    with pytest.raises(FileOperationError):
        FileSystemDocumentStore(root=str(tmp_path)).get_original(session)


def test_store_selection():
    assert isinstance(get_document_store("filesystem"), FileSystemDocumentStore)
    assert isinstance(get_document_store("inline"), InlineDocumentStore)
