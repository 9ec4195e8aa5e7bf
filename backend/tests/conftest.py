"""Shared fixtures for the DocSign backend tests.

The database and storage locations are pointed at a throwaway directory
before anything from ``docsign`` is imported, because settings and the
engine are created at import time.
"""

import base64
import io
import os
import sys
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="docsign-tests-"))

# A file database (not :memory:) so TestClient worker threads share one DB.
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'docsign-test.db'}"
os.environ["STORAGE_ROOT"] = str(_TEST_ROOT / "storage")
os.environ["PRESETS_MANIFEST_PATH"] = str(_TEST_ROOT / "presets" / "presets.json")
os.environ["DOCUMENT_STORAGE_BACKEND"] = "inline"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["SIGNED_DOCUMENT_RECIPIENTS"] = ""
os.environ["SIGNING_SESSION_PURGE_ENABLED"] = "false"

# Ensure backend/ is importable when pytest runs from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from PIL import Image, ImageDraw
from pypdf import PdfReader
from pypdf.generic import ContentStream
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def build_pdf(pages: int = 1, pagesize=letter) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=pagesize)
    for number in range(1, pages + 1):
        pdf.setFont("Helvetica", 12)
        pdf.drawString(72, pagesize[1] - 72, f"Agreement page {number}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def build_png_data_url(size=(120, 40)) -> str:
    image = Image.new("RGBA", size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(image)
    draw.line((5, size[1] - 10, size[0] - 5, 10), fill=(0, 0, 0, 255), width=3)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def image_xobject_count(page) -> int:
    """Number of image XObjects referenced by a pypdf page."""
    if "/Resources" not in page:
        return 0
    resources = page["/Resources"].get_object()
    if "/XObject" not in resources:
        return 0
    xobjects = resources["/XObject"].get_object()
    return sum(
        1 for name in xobjects
        if xobjects[name].get_object().get("/Subtype") == "/Image"
    )


def read_pdf(data: bytes) -> PdfReader:
    return PdfReader(io.BytesIO(data))


def _concat(m, n):
    """Product of two PDF matrices given as (a, b, c, d, e, f)."""
    a1, b1, c1, d1, e1, f1 = m
    a2, b2, c2, d2, e2, f2 = n
    return (
        a1 * a2 + b1 * c2,
        a1 * b2 + b1 * d2,
        c1 * a2 + d1 * c2,
        c1 * b2 + d1 * d2,
        e1 * a2 + f1 * c2 + e2,
        e1 * b2 + f1 * d2 + f2,
    )


def image_placements(reader: PdfReader, page) -> list:
    """(x, y, width, height) of every image drawn on a page.

    Walks the content stream tracking q/Q and cm so the result is in page
    space regardless of how the overlay was merged.
    """
    xobjects = {}
    if "/Resources" in page:
        resources = page["/Resources"].get_object()
        if "/XObject" in resources:
            xobjects = resources["/XObject"].get_object()

    ctm = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
    stack = []
    placements = []
    for operands, operator in ContentStream(page.get_contents(), reader).operations:
        if operator == b"q":
            stack.append(ctm)
        elif operator == b"Q":
            ctm = stack.pop()
        elif operator == b"cm":
            ctm = _concat(tuple(float(v) for v in operands), ctm)
        elif operator == b"Do":
            xobject = xobjects[operands[0]].get_object()
            if xobject.get("/Subtype") == "/Image":
                a, _, _, d, e, f = ctm
                placements.append((e, f, a, d))
    return placements


@pytest.fixture
def pdf_bytes() -> bytes:
    return build_pdf()


@pytest.fixture
def png_data_url() -> str:
    return build_png_data_url()


@pytest.fixture
def db():
    from docsign.database import SessionLocal, init_db
    from docsign.models import SigningSession

    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.query(SigningSession).delete(synchronize_session=False)
        session.commit()
        session.close()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from docsign.main import app

    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    return tmp_path / "storage"
