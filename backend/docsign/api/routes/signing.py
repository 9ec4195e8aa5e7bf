import base64
import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from docsign.config import settings
from docsign.database import get_db
from docsign.models.signing_session import SigningSession, SigningSessionStatus
from docsign.schemas.signing import (
    LegacyCoordinates,
    PresetLinkRequest,
    PresetSummary,
    SignatureSubmission,
    SignLinkResponse,
    SigningSessionListResponse,
    SigningSessionResponse,
    SigningSessionSummary,
    SigningStatusResponse,
    SubmitSignatureResponse,
)
from docsign.services.email_service import strip_pdf_extension
from docsign.services.notification_service import SigningNotificationService
from docsign.services.preset_service import PresetService
from docsign.services.signing_service import SigningService
from docsign.utils.exceptions import ValidationError
from docsign.utils.field_parsing import parse_field_payload, signature_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/signing", tags=["signing"])

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


def get_notification_service() -> SigningNotificationService:
    return SigningNotificationService()


def get_preset_service() -> PresetService:
    return PresetService()


def _sign_link(session: SigningSession) -> SignLinkResponse:
    base = (settings.public_base_url or "").rstrip("/")
    return SignLinkResponse(link=f"{base}{session.link}", token_id=session.token)


def _pdf_download(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.post("/links", response_model=SignLinkResponse)
async def create_sign_link(
    pdf: Optional[UploadFile] = File(None, description="PDF document to be signed"),
    fields: Optional[str] = Form(None, description="JSON list of placed fields"),
    coords: Optional[str] = Form(None, description="Legacy single signature position"),
    db: Session = Depends(get_db)
):
    """Upload a PDF with placed fields and create a pending signing session"""
    try:
        if pdf is None or not pdf.filename:
            raise ValidationError("Missing PDF file.", field="pdf")

        if (pdf.content_type or "").lower() not in PDF_CONTENT_TYPES:
            raise ValidationError(
                "Only PDF files are allowed.",
                field="pdf",
                details={"content_type": pdf.content_type}
            )

        if fields and fields.strip():
            placed = parse_field_payload(fields, field_name="fields")
        else:
            placed = parse_field_payload(coords, field_name="coords")

        # Read one byte past the limit so oversize uploads are detectable
        data = await pdf.read(settings.max_upload_bytes + 1)
        if len(data) > settings.max_upload_bytes:
            raise ValidationError(
                "PDF file is too large.",
                field="pdf",
                details={"max_bytes": settings.max_upload_bytes}
            )

        service = SigningService(db)
        session = service.create_session(data, pdf.filename, placed)
    finally:
        if pdf is not None:
            await pdf.close()

    return _sign_link(session)


@router.post("/links/preset", response_model=SignLinkResponse)
def create_sign_link_from_preset(
    request: PresetLinkRequest,
    db: Session = Depends(get_db),
    presets: PresetService = Depends(get_preset_service)
):
    """Create a signing session from a preset document"""
    service = SigningService(db, presets=presets)
    session = service.create_session_from_preset(request.preset_id)
    return _sign_link(session)


@router.get("/presets", response_model=List[PresetSummary])
def list_presets(presets: PresetService = Depends(get_preset_service)):
    """Presets whose PDF is available in this deployment"""
    return [
        PresetSummary(id=p.id, name=p.name, description=p.description)
        for p in presets.list_available()
    ]


@router.get("/sessions", response_model=SigningSessionListResponse)
def list_sessions(
    status: Optional[SigningSessionStatus] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """List signing sessions, newest first"""
    service = SigningService(db)
    sessions, total = service.list_sessions(status=status, skip=skip, limit=limit)
    items = [
        SigningSessionSummary(
            token_id=s.token,
            original_filename=s.original_filename,
            status=s.status,
            field_count=len(s.fields or []),
            signer_email=s.signer_email,
            preset_id=s.preset_id,
            created_at=s.created_at,
            signed_at=s.signed_at,
        )
        for s in sessions
    ]
    return SigningSessionListResponse(items=items, total=total)


@router.get("/sessions/{token}", response_model=SigningSessionResponse)
def get_signing_session(token: str, db: Session = Depends(get_db)):
    """Field layout and original PDF for the signer page"""
    service = SigningService(db)
    session = service.get_session(token)
    fields = service.get_fields(session)
    sig_fields = signature_fields(fields)

    return SigningSessionResponse(
        token_id=session.token,
        original_filename=session.original_filename,
        status=session.status,
        fields=fields,
        coordinates=LegacyCoordinates.from_field(sig_fields[0]) if sig_fields else None,
        pdf_base64=base64.b64encode(service.store.get_original(session)).decode("ascii"),
        created_at=session.created_at,
        signed_at=session.signed_at,
    )


@router.get("/sessions/{token}/status", response_model=SigningStatusResponse)
def get_signing_status(token: str, db: Session = Depends(get_db)):
    service = SigningService(db)
    session = service.get_session(token)
    return SigningStatusResponse(
        token_id=session.token,
        status=session.status,
        signed=session.is_signed,
        signed_at=session.signed_at,
    )


@router.get("/sessions/{token}/document")
def download_document(
    token: str,
    version: str = Query("original", pattern="^(original|signed)$"),
    db: Session = Depends(get_db)
):
    """Download the original or signed PDF"""
    service = SigningService(db)
    session = service.get_session(token)

    if version == "signed":
        content = service.get_signed_document(token)
        filename = f"{strip_pdf_extension(session.original_filename)}_signed.pdf"
    else:
        content = service.get_original_document(token)
        filename = session.original_filename

    return _pdf_download(content, filename)


@router.post("/submit", response_model=SubmitSignatureResponse)
def submit_signature(
    submission: SignatureSubmission,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: SigningNotificationService = Depends(get_notification_service)
):
    """Embed the signer's values into the PDF and mark the session signed"""
    service = SigningService(db)
    result = service.submit_signature(submission)
    session = result.session

    # Notifications run after the response is sent
    background_tasks.add_task(
        notifier.notify_signed,
        session.token,
        session.original_filename,
        result.pdf_bytes,
        session.signer_email,
    )

    return SubmitSignatureResponse(
        message="Document signed successfully",
        token_id=session.token,
        status=SigningSessionStatus.SIGNED,
    )
