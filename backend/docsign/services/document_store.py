"""
Storage boundary for signing-session documents.

The default keeps PDFs inline (base64 in the session row) so any stateless
worker can serve a session from the database alone. The filesystem store
keeps rows small and writes files under ``storage_root/signing`` instead.
"""

import base64
import binascii
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from docsign.config import settings
from docsign.models.signing_session import SigningSession
from docsign.utils.exceptions import FileOperationError

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Stores original and signed PDFs for a signing session.

    ``put_*`` methods return the column values to set on the session row;
    they never touch the database themselves.
    """

    name: str = "abstract"

    @abstractmethod
    def put_original(self, token: str, data: bytes) -> Dict[str, Optional[str]]:
        ...

    @abstractmethod
    def get_original(self, session: SigningSession) -> bytes:
        ...

    @abstractmethod
    def put_signed(self, token: str, data: bytes) -> Dict[str, Optional[str]]:
        ...

    @abstractmethod
    def get_signed(self, session: SigningSession) -> Optional[bytes]:
        ...

    def discard(self, values: Dict[str, Optional[str]]) -> None:
        """Drop artifacts written by a put_* call whose row update never landed."""

    def delete_all(self, session: SigningSession) -> None:
        """Remove every stored artifact for a session being purged."""


class InlineDocumentStore(DocumentStore):
    name = "inline"

    @staticmethod
    def _decode(value: Optional[str], token: str, which: str) -> bytes:
        if not value:
            raise FileOperationError("read", f"{which} document for {token}", "no inline content")
        try:
            return base64.b64decode(value)
        except (binascii.Error, ValueError) as e:
            raise FileOperationError("read", f"{which} document for {token}", str(e))

    def put_original(self, token: str, data: bytes) -> Dict[str, Optional[str]]:
        return {
            "document_base64": base64.b64encode(data).decode("ascii"),
            "document_path": None,
        }

    def get_original(self, session: SigningSession) -> bytes:
        if not session.document_base64 and session.document_path:
            # Row written by the filesystem store before a backend switch.
            return FileSystemDocumentStore().get_original(session)
        return self._decode(session.document_base64, session.token, "original")

    def put_signed(self, token: str, data: bytes) -> Dict[str, Optional[str]]:
        return {
            "signed_document_base64": base64.b64encode(data).decode("ascii"),
            "signed_document_path": None,
        }

    def get_signed(self, session: SigningSession) -> Optional[bytes]:
        if session.signed_document_base64:
            return self._decode(session.signed_document_base64, session.token, "signed")
        if session.signed_document_path:
            return FileSystemDocumentStore().get_signed(session)
        return None


class FileSystemDocumentStore(DocumentStore):
    name = "filesystem"

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.storage_root) / "signing"

    def _write(self, filename: str, data: bytes) -> str:
        destination = self.root / filename
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as e:
            raise FileOperationError("write", str(destination), str(e))
        return str(destination)

    @staticmethod
    def _read(path: Optional[str]) -> bytes:
        if not path:
            raise FileOperationError("read", "<unset>", "no stored path")
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise FileOperationError("read", path, str(e))

    @staticmethod
    def _unlink(path: Optional[str]) -> None:
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove stored document {path}: {e}")

    def put_original(self, token: str, data: bytes) -> Dict[str, Optional[str]]:
        return {
            "document_path": self._write(f"{token}.pdf", data),
            "document_base64": None,
        }

    def get_original(self, session: SigningSession) -> bytes:
        if not session.document_path and session.document_base64:
            return InlineDocumentStore().get_original(session)
        return self._read(session.document_path)

    def put_signed(self, token: str, data: bytes) -> Dict[str, Optional[str]]:
        # Unique name per attempt so a losing concurrent submission never
        # overwrites the winner's output.
        filename = f"{token}_signed_{uuid.uuid4().hex[:8]}.pdf"
        return {
            "signed_document_path": self._write(filename, data),
            "signed_document_base64": None,
        }

    def get_signed(self, session: SigningSession) -> Optional[bytes]:
        if session.signed_document_path:
            return self._read(session.signed_document_path)
        if session.signed_document_base64:
            return InlineDocumentStore().get_signed(session)
        return None

    def discard(self, values: Dict[str, Optional[str]]) -> None:
        self._unlink(values.get("signed_document_path") or values.get("document_path"))

    def delete_all(self, session: SigningSession) -> None:
        self._unlink(session.document_path)
        self._unlink(session.signed_document_path)


def get_document_store(backend: Optional[str] = None) -> DocumentStore:
    """Return the store selected by settings.document_storage_backend."""
    selected = (backend or settings.document_storage_backend or "inline").strip().lower()
    if selected == "filesystem":
        return FileSystemDocumentStore()
    return InlineDocumentStore()
