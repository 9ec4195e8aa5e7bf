import enum
import logging
import re
from datetime import datetime
from typing import Annotated, Optional, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from docsign.models.signing_session import SigningSessionStatus

logger = logging.getLogger(__name__)

LEGACY_FIELD_ID = "legacy"
PNG_DATA_URL_PREFIX = "data:image/png;base64,"

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", re.IGNORECASE)

# Geometry must arrive as real JSON numbers; "0.5" or true are rejected.
PageNumber = Annotated[int, Field(strict=True, ge=1)]
Ratio = Annotated[float, Field(strict=True, ge=0, le=1)]
Extent = Annotated[float, Field(strict=True, gt=0)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldKind(str, enum.Enum):
    SIGNATURE = "signature"
    DATE = "date"
    TEXT = "text"


class SigningField(CamelModel):
    """A rectangle placed on one page, positioned by page-relative ratios.

    ``x_ratio``/``y_ratio`` locate the top-left corner as fractions of the page
    as it was rendered when the field was placed; ``width``/``height`` are the
    box size in PDF points.
    """

    id: Optional[str] = None
    kind: FieldKind = Field(alias="type")
    page: PageNumber
    x_ratio: Ratio
    y_ratio: Ratio
    width: Extent
    height: Extent

    @field_validator("id", mode="before")
    @classmethod
    def blank_id_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def key(self) -> str:
        """Lookup key for submitted values."""
        return self.id or LEGACY_FIELD_ID

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class LegacyCoordinates(CamelModel):
    """Single signature position used before multi-field sessions existed."""

    page: PageNumber
    x_ratio: Ratio
    y_ratio: Ratio
    width: Extent
    height: Extent

    def to_field(self) -> SigningField:
        return SigningField(
            id=LEGACY_FIELD_ID,
            kind=FieldKind.SIGNATURE,
            page=self.page,
            x_ratio=self.x_ratio,
            y_ratio=self.y_ratio,
            width=self.width,
            height=self.height,
        )

    @classmethod
    def from_field(cls, field: SigningField) -> "LegacyCoordinates":
        return cls(
            page=field.page,
            x_ratio=field.x_ratio,
            y_ratio=field.y_ratio,
            width=field.width,
            height=field.height,
        )


class SignatureSubmission(CamelModel):
    token_id: str = Field(min_length=1)
    signatures: Optional[Dict[str, str]] = None  # field id -> PNG data URL
    text_values: Optional[Dict[str, str]] = None  # field id -> text
    signature: Optional[str] = None  # legacy single signature
    position: Optional[LegacyCoordinates] = None  # legacy single position
    email: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if value is None:
            return None
        email = str(value).strip()
        if not email:
            return None
        if not EMAIL_RE.match(email):
            # Optional courtesy address, dropped rather than rejected.
            logger.warning(f"Ignoring malformed signer email: {email!r}")
            return None
        return email


class PresetLinkRequest(CamelModel):
    preset_id: str = Field(min_length=1)

    @field_validator("preset_id")
    @classmethod
    def strip_preset_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("presetId is required")
        return value


class SignLinkResponse(CamelModel):
    link: str
    token_id: str


class SubmitSignatureResponse(CamelModel):
    message: str
    token_id: str
    status: SigningSessionStatus


class SigningSessionResponse(CamelModel):
    token_id: str
    original_filename: str
    status: SigningSessionStatus
    fields: List[SigningField]
    coordinates: Optional[LegacyCoordinates] = None
    pdf_base64: str
    created_at: datetime
    signed_at: Optional[datetime] = None


class SigningStatusResponse(CamelModel):
    token_id: str
    status: SigningSessionStatus
    signed: bool
    signed_at: Optional[datetime] = None


class SigningSessionSummary(CamelModel):
    token_id: str
    original_filename: str
    status: SigningSessionStatus
    field_count: int
    signer_email: Optional[str] = None
    preset_id: Optional[str] = None
    created_at: datetime
    signed_at: Optional[datetime] = None


class SigningSessionListResponse(CamelModel):
    items: List[SigningSessionSummary]
    total: int


class PresetSummary(CamelModel):
    id: str
    name: str
    description: str = ""
