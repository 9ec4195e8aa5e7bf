import json
from typing import Optional, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str

    # CORS / links
    frontend_url: str = "http://localhost:5173"
    public_base_url: str = ""  # Prefixed to /sign/<token> links when set

    # Storage
    storage_root: str = "storage"
    document_storage_backend: str = "inline"  # "inline" (base64 in row) or "filesystem"
    max_upload_bytes: int = 25 * 1024 * 1024
    presets_manifest_path: str = "presets/presets.json"

    # Stamping
    signing_date_format: str = "%m/%d/%Y"

    # Email
    email_enabled: bool = False  # Safety: disabled by default
    email_transport: str = "smtp"  # "smtp" or "http"
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_use_tls: bool = True
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    email_flow_url: Optional[str] = None  # HTTP relay endpoint when email_transport == "http"
    email_from_address: Optional[str] = None
    email_from_name: str = "DocSign"
    email_timeout_seconds: float = 30.0

    # Internal recipients of every signed document.
    # Raw string on purpose: pydantic-settings would json.loads() a List[str]
    # field and crash on an empty env var.
    signed_document_recipients: Optional[str] = None

    # Maintenance jobs
    signing_session_purge_enabled: bool = False
    signing_session_purge_interval_hours: int = 24
    signing_session_max_age_days: int = 90

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    def get_signed_document_recipients(self) -> list[str]:
        """Return normalized internal recipient list.

        Parsing rules:
        - None/empty/whitespace -> []
        - JSON list string (starts with '[') -> parsed list
        - otherwise -> comma-separated list
        """
        return self._parse_email_list(self.signed_document_recipients)

    @staticmethod
    def _parse_email_list(raw_value: Optional[str]) -> list[str]:
        if raw_value is None:
            return []

        raw = str(raw_value).strip()
        if not raw:
            return []

        items: list[Any]

        if raw.startswith("["):
            parsed: Any = None
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                parsed = None

            if isinstance(parsed, list):
                items = parsed
            else:
                # Looks like JSON but isn't; split the bracket contents instead.
                stripped = raw
                if stripped.endswith("]"):
                    stripped = stripped[1:-1]
                items = stripped.split(",")
        else:
            items = raw.split(",")

        normalized: list[str] = []
        for item in items:
            if item is None:
                continue
            email = str(item).strip().strip('"').strip().lower()
            if not email:
                continue
            normalized.append(email)
        return normalized

    @field_validator("document_storage_backend", "email_transport", mode="before")
    @classmethod
    def normalize_choice(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("document_storage_backend")
    @classmethod
    def check_storage_backend(cls, value: str) -> str:
        if value not in ("inline", "filesystem"):
            raise ValueError("document_storage_backend must be 'inline' or 'filesystem'")
        return value

    @field_validator("email_transport")
    @classmethod
    def check_email_transport(cls, value: str) -> str:
        if value not in ("smtp", "http"):
            raise ValueError("email_transport must be 'smtp' or 'http'")
        return value


settings = Settings()
