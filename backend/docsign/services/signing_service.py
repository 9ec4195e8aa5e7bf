import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docsign.config import settings
from docsign.models.signing_session import SigningSession, SigningSessionStatus
from docsign.schemas.signing import PNG_DATA_URL_PREFIX, SignatureSubmission, SigningField
from docsign.services.document_store import DocumentStore, get_document_store
from docsign.services.pdf_stamp_service import (
    InvalidDocumentError,
    InvalidSignatureImageError,
    PdfStampService,
    decode_signature_image,
    pdf_stamp_service,
)
from docsign.services.preset_service import PresetService
from docsign.utils.exceptions import (
    AlreadySignedError,
    FileOperationError,
    NotFoundError,
    PersistenceError,
    SigningSessionNotFoundError,
    UnavailableError,
    ValidationError,
)
from docsign.utils.field_parsing import (
    dump_fields,
    load_stored_fields,
    require_signature_field,
    signature_fields,
)
from docsign.utils.pdf_helpers import page_in_range

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "document.pdf"


@dataclass
class SignedDocument:
    session: SigningSession
    pdf_bytes: bytes


def _clean_filename(filename: Optional[str]) -> str:
    name = PurePath((filename or "").replace("\\", "/")).name.strip()
    return (name or DEFAULT_FILENAME)[:255]


class SigningService:
    def __init__(
        self,
        db: Session,
        store: Optional[DocumentStore] = None,
        stamper: Optional[PdfStampService] = None,
        presets: Optional[PresetService] = None,
    ):
        self.db = db
        self.store = store or get_document_store()
        self.stamper = stamper or pdf_stamp_service
        self.presets = presets or PresetService()

    # ------------------------------------------------------------------
    # Session creation
    # ------------------------------------------------------------------

    def create_session(
        self,
        pdf_bytes: bytes,
        filename: Optional[str],
        fields: Sequence[SigningField],
        preset_id: Optional[str] = None,
    ) -> SigningSession:
        """Validate an upload and persist a new pending session."""
        if not pdf_bytes:
            raise ValidationError("Missing PDF file.", field="pdf")

        if len(pdf_bytes) > settings.max_upload_bytes:
            raise ValidationError(
                "PDF file is too large.",
                field="pdf",
                details={"max_bytes": settings.max_upload_bytes, "size": len(pdf_bytes)},
            )

        require_signature_field(fields)

        try:
            page_count = self.stamper.count_pages(pdf_bytes)
        except InvalidDocumentError as e:
            raise ValidationError(f"Invalid PDF file: {e}", field="pdf")

        out_of_range = [f.key for f in fields if not page_in_range(f.page, page_count)]
        if out_of_range:
            # Tolerated: these are skipped at stamping time.
            logger.warning(
                f"Fields {out_of_range} reference pages beyond the document's {page_count} page(s)"
            )

        token = str(uuid.uuid4())
        stored = self.store.put_original(token, pdf_bytes)
        now = datetime.utcnow()

        session = SigningSession(
            token=token,
            original_filename=_clean_filename(filename),
            fields=dump_fields(fields),
            status=SigningSessionStatus.PENDING.value,
            preset_id=preset_id,
            created_at=now,
            updated_at=now,
            **stored,
        )

        try:
            self.db.add(session)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.store.discard(stored)
            logger.error(f"Failed to save signing session {token}: {e}", exc_info=True)
            raise PersistenceError("save signing session metadata", str(e))

        self.db.refresh(session)
        logger.info(
            f"Created signing session {token} for '{session.original_filename}' "
            f"({len(fields)} field(s), {page_count} page(s), store={self.store.name})"
        )
        return session

    def create_session_from_preset(self, preset_id: str) -> SigningSession:
        preset = self.presets.get_preset(preset_id)
        if not preset:
            raise NotFoundError("Preset", preset_id)

        if not preset.fields:
            raise ValidationError(
                f'Preset "{preset.name}" has no saved field configuration.',
                field="presetId",
                details={"preset_id": preset_id},
            )

        if not preset.pdf_available():
            raise UnavailableError(
                f'Preset "{preset.name}"',
                "the PDF file has not been added to this deployment",
            )

        return self.create_session(
            self.presets.load_pdf(preset),
            preset.original_filename,
            preset.fields,
            preset_id=preset.id,
        )

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def get_session(self, token: str, for_update: bool = False) -> SigningSession:
        query = self.db.query(SigningSession).filter(SigningSession.token == token)
        if for_update:
            query = query.with_for_update()
        session = query.first()
        if not session:
            raise SigningSessionNotFoundError(token)
        return session

    def get_fields(self, session: SigningSession) -> List[SigningField]:
        return load_stored_fields(session.fields)

    def list_sessions(
        self,
        status: Optional[SigningSessionStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[List[SigningSession], int]:
        """Get signing sessions with optional status filter and pagination"""
        query = self.db.query(SigningSession)

        if status:
            query = query.filter(SigningSession.status == SigningSessionStatus(status).value)

        total = query.count()
        sessions = query.order_by(SigningSession.created_at.desc()).offset(skip).limit(limit).all()
        return sessions, total

    def get_original_document(self, token: str) -> bytes:
        return self.store.get_original(self.get_session(token))

    def get_signed_document(self, token: str) -> bytes:
        session = self.get_session(token)
        data = self.store.get_signed(session) if session.is_signed else None
        if data is None:
            raise NotFoundError("Signed document", token)
        return data

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_signatures(submission: SignatureSubmission, sig_fields: List[SigningField]) -> Dict[str, str]:
        if submission.signatures is not None:
            return dict(submission.signatures)
        if submission.signature:
            # Legacy clients send one signature for the first signature field.
            return {sig_fields[0].key: submission.signature}
        return {}

    @staticmethod
    def _validate_signatures(sig_fields: List[SigningField], signatures: Dict[str, str]) -> None:
        """Every signature field needs a decodable PNG data URL before anything is touched."""
        for field in sig_fields:
            value = signatures.get(field.key)
            if not value or not value.startswith(PNG_DATA_URL_PREFIX):
                raise ValidationError(
                    f"Missing or invalid signature for field {field.key}.",
                    field=f"signatures.{field.key}",
                )
            try:
                decode_signature_image(value)
            except InvalidSignatureImageError as e:
                raise ValidationError(
                    f"Missing or invalid signature for field {field.key}: {e}",
                    field=f"signatures.{field.key}",
                )

    def _mark_signed(
        self,
        token: str,
        signed_at: datetime,
        signer_email: Optional[str],
        stored: Dict[str, Optional[str]],
    ) -> bool:
        """Conditional pending -> signed update; False when another submission won."""
        values = {
            SigningSession.status: SigningSessionStatus.SIGNED.value,
            SigningSession.signed_at: signed_at,
            SigningSession.updated_at: signed_at,
        }
        if signer_email:
            values[SigningSession.signer_email] = signer_email
        for column, value in stored.items():
            values[getattr(SigningSession, column)] = value

        try:
            updated = (
                self.db.query(SigningSession)
                .filter(
                    SigningSession.token == token,
                    SigningSession.status == SigningSessionStatus.PENDING.value,
                )
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                return False
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record signature for {token}: {e}", exc_info=True)
            raise PersistenceError("save the signed document", str(e))
        return True

    def submit_signature(self, submission: SignatureSubmission, now: Optional[datetime] = None) -> SignedDocument:
        """
        Stamp the submitted values into the session's PDF and mark it signed.

        Validation is all-or-nothing: if any signature field lacks a valid
        PNG, nothing is stamped or stored and the session stays pending.
        """
        token = submission.token_id
        session = self.get_session(token, for_update=True)

        if session.is_signed:
            raise AlreadySignedError(token)

        fields = self.get_fields(session)
        if not fields and submission.position is not None:
            fields = [submission.position.to_field()]

        sig_fields = signature_fields(fields)
        if not sig_fields:
            raise ValidationError("No signature fields in session.")

        signatures = self._resolve_signatures(submission, sig_fields)
        self._validate_signatures(sig_fields, signatures)

        original = self.store.get_original(session)
        signed_at = now or datetime.utcnow()

        try:
            signed_bytes = self.stamper.stamp(
                original,
                fields,
                signatures,
                submission.text_values or {},
                signed_on=signed_at,
            )
        except InvalidDocumentError as e:
            raise FileOperationError("stamp", f"signing session {token}", str(e))

        stored = self.store.put_signed(token, signed_bytes)
        try:
            won = self._mark_signed(token, signed_at, submission.email, stored)
        except PersistenceError:
            self.store.discard(stored)
            raise

        if not won:
            self.store.discard(stored)
            logger.warning(f"Concurrent submission for {token} lost the race; discarding its output")
            raise AlreadySignedError(token)

        self.db.refresh(session)
        logger.info(f"Signing session {token} signed ({len(fields)} field(s))")
        return SignedDocument(session=session, pdf_bytes=signed_bytes)
