import uuid
import enum
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, JSON
from sqlalchemy.dialects import mysql

from docsign.database import Base

# Inline base64 PDFs outgrow MySQL TEXT (64KB).
DocumentText = Text().with_variant(mysql.LONGTEXT(), "mysql")


class SigningSessionStatus(str, enum.Enum):
    PENDING = "pending"
    SIGNED = "signed"

    @property
    def display_name(self) -> str:
        return {
            "pending": "Awaiting Signature",
            "signed": "Signed",
        }.get(self.value, self.value)


class SigningSession(Base):
    """
    A document waiting for (or having received) a signature.

    Created once when an admin places fields on an uploaded PDF, and updated
    exactly once more when the signer submits. The original document lives
    either inline (document_base64) or on disk (document_path), depending on
    the configured document store; the signed output follows the same rule.
    """
    __tablename__ = "signing_sessions"

    token = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    original_filename = Column(String(255), nullable=False)
    document_base64 = Column(DocumentText, nullable=True)
    document_path = Column(String(500), nullable=True)
    fields = Column(JSON, nullable=False, default=list)  # Serialized SigningField list
    status = Column(String(20), nullable=False, default=SigningSessionStatus.PENDING.value, index=True)
    signer_email = Column(String(255), nullable=True)
    signed_document_base64 = Column(DocumentText, nullable=True)
    signed_document_path = Column(String(500), nullable=True)
    preset_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    signed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_signed(self) -> bool:
        return self.status == SigningSessionStatus.SIGNED.value

    @property
    def link(self) -> str:
        return f"/sign/{self.token}"

    def __repr__(self):
        return f"<SigningSession {self.token[:8]}... status={self.status}>"
