"""End-to-end tests for the /api/signing routes"""

import base64
import io
import json

import pytest
from PIL import Image

from conftest import build_pdf, build_png_data_url, image_placements, image_xobject_count, read_pdf
from docsign.api.routes.signing import get_notification_service, get_preset_service
from docsign.services.preset_service import PresetService

SIGNATURE = {"id": "sig-1", "type": "signature", "page": 1, "xRatio": 0.1, "yRatio": 0.8, "width": 150, "height": 50}
DATE = {"id": "date-1", "type": "date", "page": 1, "xRatio": 0.6, "yRatio": 0.8, "width": 100, "height": 20}


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify_signed(self, token, document_name, pdf_content, signer_email=None):
        self.calls.append((token, document_name, len(pdf_content), signer_email))


def _upload(client, fields=None, coords=None, pdf=None, filename="contract.pdf", content_type="application/pdf"):
    data = {}
    if fields is not None:
        data["fields"] = json.dumps(fields)
    if coords is not None:
        data["coords"] = json.dumps(coords)
    files = {"pdf": (filename, pdf if pdf is not None else build_pdf(), content_type)}
    return client.post("/api/signing/links", files=files, data=data)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_single_signature_end_to_end(client):
    notifier = RecordingNotifier()
    client.app.dependency_overrides[get_notification_service] = lambda: notifier

    created = _upload(client, fields=[SIGNATURE])
    assert created.status_code == 200
    body = created.json()
    token = body["tokenId"]
    assert body["link"] == f"/sign/{token}"

    session = client.get(f"/api/signing/sessions/{token}")
    assert session.status_code == 200
    payload = session.json()
    assert payload["status"] == "pending"
    assert payload["fields"][0]["type"] == "signature"
    assert payload["coordinates"]["xRatio"] == 0.1
    assert base64.b64decode(payload["pdfBase64"]).startswith(b"%PDF")

    submitted = client.post(
        "/api/signing/submit",
        json={"tokenId": token, "signatures": {"sig-1": build_png_data_url()}, "email": "signer@example.com"},
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "signed"

    status = client.get(f"/api/signing/sessions/{token}/status").json()
    assert status["signed"] is True
    assert status["signedAt"]

    download = client.get(f"/api/signing/sessions/{token}/document", params={"version": "signed"})
    assert download.status_code == 200
    assert download.headers["content-type"] == "application/pdf"
    assert "contract_signed.pdf" in download.headers["content-disposition"]
    assert image_xobject_count(read_pdf(download.content).pages[0]) >= 1

    assert notifier.calls == [(token, "contract.pdf", len(download.content), "signer@example.com")]
    print("[PASS] upload -> sign -> download flow")


def test_legacy_coords_upload(client):
    response = _upload(client, coords={"page": 1, "xRatio": 0.2, "yRatio": 0.4, "width": 150, "height": 50})
    assert response.status_code == 200
    token = response.json()["tokenId"]
    fields = client.get(f"/api/signing/sessions/{token}").json()["fields"]
    assert fields[0]["id"] == "legacy"


def test_upload_validation_errors_use_error_envelope(client):
    no_signature = _upload(client, fields=[DATE])
    assert no_signature.status_code == 400
    error = no_signature.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert no_signature.json()["request_id"]

    wrong_type = _upload(client, fields=[SIGNATURE], filename="notes.txt", content_type="text/plain")
    assert wrong_type.status_code == 400
    assert wrong_type.json()["error"]["field"] == "pdf"

    bad_geometry = _upload(client, fields=[{**SIGNATURE, "xRatio": "0.1"}])
    assert bad_geometry.status_code == 400

    missing_layout = _upload(client)
    assert missing_layout.status_code == 400

    unreadable = _upload(client, fields=[SIGNATURE], pdf=b"%PDF-garbage")
    assert unreadable.status_code == 400

    assert client.get("/api/signing/sessions").json()["total"] == 0


def test_missing_signature_returns_400_and_stays_pending(client):
    token = _upload(client, fields=[SIGNATURE]).json()["tokenId"]

    response = client.post("/api/signing/submit", json={"tokenId": token, "signatures": {}})
    assert response.status_code == 400
    assert response.json()["error"]["field"] == "signatures.sig-1"

    status = client.get(f"/api/signing/sessions/{token}/status").json()
    assert status["status"] == "pending"
    assert status["signed"] is False

    missing = client.get(f"/api/signing/sessions/{token}/document", params={"version": "signed"})
    assert missing.status_code == 404


def test_second_submission_rejected(client):
    client.app.dependency_overrides[get_notification_service] = lambda: RecordingNotifier()
    token = _upload(client, fields=[SIGNATURE]).json()["tokenId"]
    body = {"tokenId": token, "signatures": {"sig-1": build_png_data_url()}}

    assert client.post("/api/signing/submit", json=body).status_code == 200
    again = client.post("/api/signing/submit", json=body)
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


def test_unknown_token_is_404(client):
    assert client.get("/api/signing/sessions/nope").status_code == 404
    response = client.post(
        "/api/signing/submit",
        json={"tokenId": "nope", "signatures": {"sig-1": build_png_data_url()}},
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_malformed_submission_is_400(client):
    response = client.post("/api/signing/submit", json={"signatures": {}})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_malformed_email_is_dropped_and_signing_succeeds(client):
    notifier = RecordingNotifier()
    client.app.dependency_overrides[get_notification_service] = lambda: notifier
    token = _upload(client, fields=[SIGNATURE]).json()["tokenId"]

    response = client.post(
        "/api/signing/submit",
        json={"tokenId": token, "signatures": {"sig-1": build_png_data_url()}, "email": "nope"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "signed"
    assert notifier.calls[0][3] is None


def test_oversized_signature_image_is_400_and_stays_pending(client):
    token = _upload(client, fields=[SIGNATURE]).json()["tokenId"]
    buffer = io.BytesIO()
    Image.new("1", (5000, 5000)).save(buffer, format="PNG")
    oversized = "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()

    response = client.post("/api/signing/submit", json={"tokenId": token, "signatures": {"sig-1": oversized}})
    assert response.status_code == 400
    assert response.json()["error"]["field"] == "signatures.sig-1"
    assert client.get(f"/api/signing/sessions/{token}/status").json()["status"] == "pending"


def test_signed_download_places_signature_at_field(client):
    client.app.dependency_overrides[get_notification_service] = lambda: RecordingNotifier()
    token = _upload(client, fields=[SIGNATURE]).json()["tokenId"]
    client.post("/api/signing/submit", json={"tokenId": token, "signatures": {"sig-1": build_png_data_url()}})

    download = client.get(f"/api/signing/sessions/{token}/document", params={"version": "signed"})
    reader = read_pdf(download.content)
    assert image_placements(reader, reader.pages[0]) == [pytest.approx((61.2, 108.4, 150, 50))]


def test_invalid_document_version_is_400(client):
    token = _upload(client, fields=[SIGNATURE]).json()["tokenId"]
    response = client.get(f"/api/signing/sessions/{token}/document", params={"version": "draft"})
    assert response.status_code == 400


def test_list_sessions_summary(client):
    _upload(client, fields=[SIGNATURE, DATE], filename="a.pdf")
    _upload(client, fields=[SIGNATURE], filename="b.pdf")

    listing = client.get("/api/signing/sessions", params={"status": "pending"}).json()
    assert listing["total"] == 2
    assert {item["originalFilename"] for item in listing["items"]} == {"a.pdf", "b.pdf"}
    assert sorted(item["fieldCount"] for item in listing["items"]) == [1, 2]


def test_preset_routes(client, tmp_path):
    (tmp_path / "nda.pdf").write_bytes(build_pdf())
    manifest = tmp_path / "presets.json"
    manifest.write_text(json.dumps({
        "presets": [
            {"id": "nda", "name": "NDA", "pdf_path": "nda.pdf", "fields": [SIGNATURE]},
            {"id": "blank", "name": "No Fields", "pdf_path": "nda.pdf"},
            {"id": "absent", "name": "Absent", "pdf_path": "missing.pdf", "fields": [SIGNATURE]},
        ]
    }))
    client.app.dependency_overrides[get_preset_service] = lambda: PresetService(str(manifest))

    presets = client.get("/api/signing/presets").json()
    assert [p["id"] for p in presets] == ["nda", "blank"]

    created = client.post("/api/signing/links/preset", json={"presetId": "nda"})
    assert created.status_code == 200
    token = created.json()["tokenId"]
    assert client.get(f"/api/signing/sessions/{token}").json()["originalFilename"] == "nda.pdf"

    assert client.post("/api/signing/links/preset", json={"presetId": "unknown"}).status_code == 404
    assert client.post("/api/signing/links/preset", json={"presetId": "blank"}).status_code == 400
    assert client.post("/api/signing/links/preset", json={"presetId": "absent"}).status_code == 503
