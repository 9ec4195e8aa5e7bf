"""
Post-signing notifications.

Two independent, best-effort sends: internal recipients get the signed PDF,
and the signer gets a courtesy copy when they left an email address. A
failure in one never affects the other, and nothing here propagates back to
the signing request.
"""

import logging
from typing import Callable, List, Optional

from docsign.config import settings
from docsign.services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)


class SigningNotificationService:
    def __init__(self, mailer: Optional[EmailService] = None, recipients: Optional[List[str]] = None):
        self.mailer = mailer or email_service
        self.recipients = recipients if recipients is not None else settings.get_signed_document_recipients()

    def _attempt(self, description: str, send: Callable[[], bool]) -> bool:
        try:
            sent = send()
        except Exception as e:
            logger.warning(f"Failed to send {description}: {e}", exc_info=True)
            return False
        if not sent:
            logger.warning(f"{description} was not delivered")
        return bool(sent)

    def notify_internal(self, token: str, document_name: str, pdf_content: bytes) -> int:
        """Email the signed PDF to every internal recipient; returns delivered count."""
        if not self.recipients:
            logger.info(f"No internal recipients configured for signed document {token}")
            return 0

        delivered = 0
        for recipient in self.recipients:
            if self._attempt(
                f"signed document email for {token} to {recipient}",
                lambda r=recipient: self.mailer.send_signed_document_email(r, document_name, pdf_content),
            ):
                delivered += 1
        return delivered

    def notify_signer(self, token: str, signer_email: Optional[str], document_name: str, pdf_content: bytes) -> bool:
        if not signer_email:
            return False
        return self._attempt(
            f"signer copy for {token} to {signer_email}",
            lambda: self.mailer.send_signer_copy_email(signer_email, document_name, pdf_content),
        )

    def notify_signed(
        self,
        token: str,
        document_name: str,
        pdf_content: bytes,
        signer_email: Optional[str] = None,
    ) -> None:
        internal = self.notify_internal(token, document_name, pdf_content)
        signer = self.notify_signer(token, signer_email, document_name, pdf_content)
        logger.info(
            f"Notification dispatch for {token} finished: "
            f"{internal} internal email(s), signer copy {'sent' if signer else 'not sent'}"
        )
