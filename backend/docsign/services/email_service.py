"""
Email Service for signing notifications.

Two transports are supported:
- ``smtp``: direct SMTP submission (STARTTLS + login) using the smtp_* settings
- ``http``: JSON POST to a relay flow (e.g. a Power Automate HTTP trigger)
  that performs the actual delivery

Every send returns a bool and never raises; callers treat email as
best-effort.
"""

import base64
import html
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

import httpx

from docsign.config import settings

logger = logging.getLogger(__name__)


def ensure_pdf_extension(name: str) -> str:
    return name if name.lower().endswith(".pdf") else f"{name}.pdf"


def strip_pdf_extension(name: str) -> str:
    return name[:-4] if name.lower().endswith(".pdf") else name


class EmailService:
    """Service for sending emails over SMTP or an HTTP relay."""

    def __init__(self):
        self.enabled = settings.email_enabled
        self.transport = settings.email_transport
        self.flow_url = settings.email_flow_url
        self.from_address = settings.email_from_address or settings.smtp_username
        self.from_name = settings.email_from_name
        self.timeout = settings.email_timeout_seconds

    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        if not self.enabled:
            return False
        if self.transport == "http":
            return bool(self.flow_url)
        return bool(settings.smtp_host and self.from_address)

    def send_email(
        self,
        to_address: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
        attachment_name: Optional[str] = None,
        attachment_content: Optional[bytes] = None,
        attachment_type: str = "application/pdf"
    ) -> bool:
        """
        Send an email through the configured transport.

        Args:
            to_address: Recipient email address
            subject: Email subject
            body_html: HTML body content
            body_text: Optional plain text body (fallback)
            attachment_name: Optional attachment filename
            attachment_content: Optional attachment content as bytes
            attachment_type: MIME type of attachment

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.enabled:
            logger.info(f"Email is disabled; not sending '{subject}' to {to_address}")
            return False

        if self.transport == "http":
            return self._send_via_http(
                to_address, subject, body_html, body_text,
                attachment_name, attachment_content, attachment_type
            )
        return self._send_via_smtp(
            to_address, subject, body_html, body_text,
            attachment_name, attachment_content, attachment_type
        )

    def _send_via_smtp(
        self,
        to_address: str,
        subject: str,
        body_html: str,
        body_text: Optional[str],
        attachment_name: Optional[str],
        attachment_content: Optional[bytes],
        attachment_type: str,
    ) -> bool:
        if not self.from_address:
            logger.warning("SMTP sender address not configured")
            return False

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_address))
        message["To"] = to_address
        message.set_content(body_text or "")
        message.add_alternative(body_html, subtype="html")

        if attachment_name and attachment_content:
            maintype, _, subtype = attachment_type.partition("/")
            message.add_attachment(
                attachment_content,
                maintype=maintype or "application",
                subtype=subtype or "octet-stream",
                filename=attachment_name,
            )

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=self.timeout) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if settings.smtp_username and settings.smtp_password:
                    server.login(settings.smtp_username, settings.smtp_password)
                server.send_message(message)
            logger.info(f"Email sent successfully to {to_address}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending email to {to_address} via SMTP: {e}")
            return False

    def _send_via_http(
        self,
        to_address: str,
        subject: str,
        body_html: str,
        body_text: Optional[str],
        attachment_name: Optional[str],
        attachment_content: Optional[bytes],
        attachment_type: str,
    ) -> bool:
        if not self.flow_url:
            logger.warning("Email relay flow URL not configured")
            return False

        payload = {
            "to": to_address,
            "subject": subject,
            "bodyHtml": body_html,
            "bodyText": body_text or "",
            "fromName": self.from_name,
        }

        if attachment_name and attachment_content:
            payload["attachmentName"] = attachment_name
            payload["attachmentContentBase64"] = base64.b64encode(attachment_content).decode("utf-8")
            payload["attachmentType"] = attachment_type

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.flow_url,
                    json=payload,
                    headers={"Content-Type": "application/json"}
                )

                if response.status_code in (200, 202):
                    logger.info(f"Email sent successfully to {to_address}")
                    return True
                logger.error(
                    f"Email relay returned {response.status_code}: {response.text}"
                )
                return False

        except httpx.TimeoutException:
            logger.error(f"Timeout sending email to {to_address}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Error sending email: {e}")
            return False

    def _signed_document_bodies(self, headline: str, message: str) -> tuple[str, str]:
        body_html = f"""
        <html>
        <body style="font-family: Arial, sans-serif; color: #333;">
            <h2 style="color: #2e0a4f;">{html.escape(headline)}</h2>
            <p>{html.escape(message)}</p>
            <p>Best wishes,<br>{html.escape(self.from_name)}</p>
            <hr style="border: 1px solid #ddd; margin: 20px 0;">
            <p style="font-size: 12px; color: #666;">
                This is an automated message. The signed document is attached.
            </p>
        </body>
        </html>
        """

        body_text = f"""
{headline}

{message}

Best wishes,
{self.from_name}
        """
        return body_html, body_text

    def send_signed_document_email(
        self,
        to_address: str,
        document_name: str,
        pdf_content: bytes
    ) -> bool:
        """Send the signed PDF to an internal recipient."""
        display_name = strip_pdf_extension(document_name)
        body_html, body_text = self._signed_document_bodies(
            "Signed Document",
            f'The document "{document_name}" has been signed. See the signed version attached.',
        )
        return self.send_email(
            to_address=to_address,
            subject=f"{self.from_name} | Signed Document: {display_name}",
            body_html=body_html,
            body_text=body_text,
            attachment_name=ensure_pdf_extension(document_name),
            attachment_content=pdf_content,
        )

    def send_signer_copy_email(
        self,
        to_address: str,
        document_name: str,
        pdf_content: bytes
    ) -> bool:
        """Send the signer a courtesy copy of what they signed."""
        display_name = strip_pdf_extension(document_name)
        body_html, body_text = self._signed_document_bodies(
            "Signed Document",
            f'Thank you for signing "{document_name}". A copy is attached for your records.',
        )
        return self.send_email(
            to_address=to_address,
            subject=f"{self.from_name} | Signed Document: {display_name}",
            body_html=body_html,
            body_text=body_text,
            attachment_name=ensure_pdf_extension(document_name),
            attachment_content=pdf_content,
        )


# Singleton instance
email_service = EmailService()
