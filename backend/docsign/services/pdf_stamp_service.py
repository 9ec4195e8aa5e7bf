"""
PDF stamping for signing sessions.

Each page that carries fields gets one ReportLab overlay drawn at PDF-space
coordinates, which is then merged onto the original page with pypdf.
"""

import base64
import binascii
import io
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.lib.colors import Color
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from docsign.config import settings
from docsign.schemas.signing import FieldKind, PNG_DATA_URL_PREFIX, SigningField
from docsign.utils.pdf_helpers import (
    FieldBox,
    PageGeometry,
    TEXT_LEFT_INSET,
    map_field_to_page,
    page_in_range,
    text_baseline,
    text_font_size,
)

logger = logging.getLogger(__name__)

TEXT_FONT = "Helvetica"
TEXT_COLOR = Color(0.2, 0.2, 0.2)

# Upper bound on decoded signature size, checked before pixel data is read.
MAX_SIGNATURE_PIXELS = 4000 * 4000


class InvalidDocumentError(ValueError):
    """The uploaded bytes are not a readable PDF."""


class InvalidSignatureImageError(ValueError):
    """A submitted signature is not a base64 PNG data URL."""


def decode_signature_image(data_url: str) -> Image.Image:
    """Decode a ``data:image/png;base64,`` URL into a loaded PIL image."""
    if not data_url or not data_url.startswith(PNG_DATA_URL_PREFIX):
        raise InvalidSignatureImageError("Expected base64 PNG data URL")

    payload = data_url[len(PNG_DATA_URL_PREFIX):]
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSignatureImageError(f"Signature is not valid base64: {e}")

    if not raw:
        raise InvalidSignatureImageError("Signature image is empty")

    try:
        image = Image.open(io.BytesIO(raw))
        if image.width * image.height > MAX_SIGNATURE_PIXELS:
            raise InvalidSignatureImageError(
                f"Signature image is too large: {image.width}x{image.height}"
            )
        image.load()
    except Image.DecompressionBombError as e:
        raise InvalidSignatureImageError(f"Signature image is too large: {e}")
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidSignatureImageError(f"Signature is not a readable image: {e}")

    if image.format != "PNG":
        raise InvalidSignatureImageError(f"Signature must be PNG, got {image.format}")
    return image


class PdfStampService:
    """Service for embedding signer-supplied values into a PDF."""

    def __init__(self, date_format: Optional[str] = None):
        self.date_format = date_format or settings.signing_date_format

    def _open(self, pdf_bytes: bytes) -> PdfReader:
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
        except (PdfReadError, ValueError, KeyError, TypeError, AttributeError, IndexError) as e:
            raise InvalidDocumentError(f"Unreadable PDF: {e}")

        if reader.is_encrypted:
            raise InvalidDocumentError("Encrypted PDFs cannot be signed")

        try:
            # Touch the page tree so structural errors surface here.
            len(reader.pages)
        except (PdfReadError, ValueError, KeyError, TypeError, AttributeError, IndexError) as e:
            raise InvalidDocumentError(f"Unreadable PDF: {e}")
        return reader

    def count_pages(self, pdf_bytes: bytes) -> int:
        return len(self._open(pdf_bytes).pages)

    def _draw_text(self, pdf: canvas.Canvas, box: FieldBox, value: str, inset: float = 0.0) -> None:
        size = text_font_size(box.height)
        pdf.setFont(TEXT_FONT, size)
        pdf.setFillColor(TEXT_COLOR)
        pdf.drawString(box.x + inset, text_baseline(box, size), value)

    def _build_overlay(
        self,
        geometry: PageGeometry,
        fields: Sequence[SigningField],
        images: Dict[str, Image.Image],
        text_values: Dict[str, str],
        date_text: str,
    ) -> bytes:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(geometry.left + geometry.width, geometry.bottom + geometry.height))

        for field in fields:
            box = map_field_to_page(field, geometry)

            if field.kind == FieldKind.SIGNATURE:
                image = images.get(field.key)
                if image is None:
                    continue
                pdf.drawImage(
                    ImageReader(image),
                    box.x,
                    box.y,
                    width=box.width,
                    height=box.height,
                    mask="auto",
                )
            elif field.kind == FieldKind.DATE:
                self._draw_text(pdf, box, date_text)
            elif field.kind == FieldKind.TEXT:
                value = (text_values.get(field.key) or "").strip()
                if value:
                    self._draw_text(pdf, box, value, inset=TEXT_LEFT_INSET)

        pdf.showPage()
        pdf.save()
        return buffer.getvalue()

    def stamp(
        self,
        pdf_bytes: bytes,
        fields: Sequence[SigningField],
        signatures: Dict[str, str],
        text_values: Optional[Dict[str, str]] = None,
        signed_on: Optional[datetime] = None,
    ) -> bytes:
        """
        Render every field onto its page and return the signed PDF bytes.

        Fields pointing at a page outside the document are skipped; the rest
        are still stamped.
        """
        reader = self._open(pdf_bytes)
        page_count = len(reader.pages)
        date_text = (signed_on or datetime.utcnow()).strftime(self.date_format)
        text_values = text_values or {}

        fields_by_page: Dict[int, List[SigningField]] = defaultdict(list)
        for field in fields:
            if not page_in_range(field.page, page_count):
                logger.warning(
                    f"Skipping {field.kind.value} field {field.key}: page {field.page} "
                    f"outside document with {page_count} page(s)"
                )
                continue
            fields_by_page[field.page].append(field)

        images: Dict[str, Image.Image] = {}
        for field in fields:
            if field.kind == FieldKind.SIGNATURE and field.key in signatures and field.key not in images:
                # RGBA keeps transparency for ReportLab's mask="auto".
                images[field.key] = decode_signature_image(signatures[field.key]).convert("RGBA")

        writer = PdfWriter(clone_from=reader)
        for page_number, page in enumerate(writer.pages, start=1):
            page_fields = fields_by_page.get(page_number)
            if page_fields:
                geometry = PageGeometry.from_mediabox(page.mediabox)
                overlay_bytes = self._build_overlay(geometry, page_fields, images, text_values, date_text)
                overlay_page = PdfReader(io.BytesIO(overlay_bytes)).pages[0]
                page.merge_page(overlay_page)

        output = io.BytesIO()
        writer.write(output)
        stamped = output.getvalue()
        output.close()

        logger.info(
            f"Stamped {sum(len(v) for v in fields_by_page.values())} field(s) "
            f"across {len(fields_by_page)} page(s)"
        )
        return stamped


# Singleton instance
pdf_stamp_service = PdfStampService()
