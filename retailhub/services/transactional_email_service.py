"""
Transactional Email Service

Delivers platform emails through a transactional provider:
- Mandrill (default; Mailchimp Transactional HTTP API)
- SMTP (aiosmtplib), for self-hosted relays

When no provider is configured the service runs in development mode: the
message is logged and reported as sent so local flows keep working.
"""

import asyncio
import base64
import logging
import os
import re
from datetime import datetime, UTC
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List

import aiosmtplib
import requests
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import escape

logger = logging.getLogger(__name__)

MANDRILL_API_URL = "https://mandrillapp.com/api/1.0"
MANDRILL_OK_STATUSES = {"sent", "queued", "scheduled"}

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailProvider(Enum):
    """Supported email service providers."""
    MANDRILL = "mandrill"
    SMTP = "smtp"


class TransactionalEmailConfig:
    """Configuration for transactional email services."""

    def __init__(self):
        provider_name = os.getenv('EMAIL_PROVIDER', 'mandrill').strip().lower()
        try:
            self.provider = EmailProvider(provider_name)
        except ValueError:
            logger.warning(f"Unknown EMAIL_PROVIDER '{provider_name}', using mandrill")
            self.provider = EmailProvider.MANDRILL

        # Common settings
        self.from_email = os.getenv('FROM_EMAIL', 'noreply@retailhub.nl')
        self.from_name = os.getenv('FROM_NAME', 'RetailHub')
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')

        # Mandrill
        self.mandrill_api_key = os.getenv('MANDRILL_API_KEY', '')

        # SMTP
        self.smtp_host = os.getenv('SMTP_HOST', '')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'true').lower() == 'true'

        self.template_dir = os.getenv('EMAIL_TEMPLATE_DIR', str(DEFAULT_TEMPLATE_DIR))

    def is_configured(self) -> bool:
        """Check if the selected provider is properly configured."""
        if self.provider == EmailProvider.MANDRILL:
            return bool(self.mandrill_api_key and self.from_email)
        if self.provider == EmailProvider.SMTP:
            return bool(self.smtp_host and self.smtp_port and self.from_email)
        return False

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.from_email:
            errors.append("FROM_EMAIL is required")

        if self.provider == EmailProvider.MANDRILL:
            if not self.mandrill_api_key:
                errors.append("MANDRILL_API_KEY is required for Mandrill provider")
        elif self.provider == EmailProvider.SMTP:
            if not self.smtp_host:
                errors.append("SMTP_HOST is required for SMTP provider")
            if not self.smtp_port or self.smtp_port <= 0:
                errors.append("SMTP_PORT must be a positive integer")

        return errors

    def masked_key(self) -> Optional[str]:
        key = self.mandrill_api_key
        if not key:
            return None
        if len(key) <= 8:
            return "*" * len(key)
        return f"{key[:4]}{'*' * (len(key) - 8)}{key[-4:]}"

    def summary(self) -> Dict[str, Any]:
        return {
            'provider': self.provider.value,
            'configured': self.is_configured(),
            'apiKey': self.masked_key(),
            'smtpHost': self.smtp_host or None,
            'fromEmail': self.from_email,
            'fromName': self.from_name,
            'replyTo': self.reply_to_email or None,
        }


class MandrillEmailService:
    """Email service implementation for Mandrill."""

    def __init__(self, config: TransactionalEmailConfig):
        self.config = config
        self.base_url = MANDRILL_API_URL

    def _build_message(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str],
        from_email: Optional[str],
        from_name: Optional[str],
        reply_to: Optional[str],
        attachments: Optional[List[Dict[str, Any]]],
        tags: Optional[List[str]],
    ) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "html": html_content,
            "subject": subject,
            "from_email": from_email or self.config.from_email,
            "from_name": from_name or self.config.from_name,
            "to": [{"email": to_email, "type": "to"}],
            "track_opens": True,
            "track_clicks": True,
        }
        if text_content:
            message["text"] = text_content
        reply = reply_to or self.config.reply_to_email
        if reply:
            message["headers"] = {"Reply-To": reply}
        if tags:
            message["tags"] = tags
        if attachments:
            message["attachments"] = [
                {
                    "type": a.get("type", "application/octet-stream"),
                    "name": a.get("filename") or a.get("name", "attachment"),
                    "content": _attachment_base64(a.get("content", "")),
                }
                for a in attachments
            ]
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        reply_to: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Send email via the Mandrill messages API."""
        try:
            payload = {
                "key": self.config.mandrill_api_key,
                "message": self._build_message(
                    to_email, subject, html_content, text_content,
                    from_email, from_name, reply_to, attachments, tags,
                ),
            }
            response = requests.post(f"{self.base_url}/messages/send.json", json=payload, timeout=15)

            if response.status_code != 200:
                return {
                    'success': False,
                    'provider': 'mandrill',
                    'error': f"HTTP {response.status_code}: {response.text}"
                }

            result = response.json()
            first = result[0] if isinstance(result, list) and result else {}
            status = first.get("status")
            if status in MANDRILL_OK_STATUSES:
                return {
                    'success': True,
                    'provider': 'mandrill',
                    'message_id': first.get('_id', ''),
                    'status': status,
                    'provider_response': result
                }
            return {
                'success': False,
                'provider': 'mandrill',
                'error': f"Mandrill status {status}: {first.get('reject_reason') or 'unknown'}",
                'provider_response': result
            }

        except Exception as e:
            return {
                'success': False,
                'provider': 'mandrill',
                'error': str(e)
            }

    def ping(self) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.base_url}/users/ping.json",
                json={"key": self.config.mandrill_api_key},
                timeout=10,
            )
            if response.status_code == 200:
                return {'success': True, 'message': response.json()}
            return {'success': False, 'error': f"HTTP {response.status_code}: {response.text}"}
        except requests.RequestException as e:
            return {'success': False, 'error': str(e)}


class SmtpEmailService:
    """Email service implementation for an SMTP relay."""

    def __init__(self, config: TransactionalEmailConfig):
        self.config = config

    def _smtp_kwargs(self) -> Dict[str, Any]:
        return {
            'hostname': self.config.smtp_host,
            'port': self.config.smtp_port,
            'start_tls': self.config.smtp_use_tls,
        }

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        reply_to: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Send email over SMTP."""
        try:
            message = MIMEMultipart('alternative')
            message['From'] = f"{from_name or self.config.from_name} <{from_email or self.config.from_email}>"
            message['To'] = to_email
            message['Subject'] = subject
            if reply_to or self.config.reply_to_email:
                message['Reply-To'] = reply_to or self.config.reply_to_email

            if text_content:
                message.attach(MIMEText(text_content, 'plain', 'utf-8'))
            message.attach(MIMEText(html_content, 'html', 'utf-8'))

            for attachment in attachments or []:
                part = MIMEBase('application', 'octet-stream')
                part.set_payload(attachment.get('content', b''))
                encoders.encode_base64(part)
                part.add_header(
                    'Content-Disposition',
                    f'attachment; filename={attachment.get("filename", "attachment")}'
                )
                message.attach(part)

            async with aiosmtplib.SMTP(**self._smtp_kwargs()) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
                result = await smtp.send_message(message)

            return {
                'success': True,
                'provider': 'smtp',
                'message_id': message.get('Message-ID', ''),
                'smtp_result': result
            }
        except Exception as e:
            return {
                'success': False,
                'provider': 'smtp',
                'error': f"SMTP sending failed: {e}"
            }

    def ping(self) -> Dict[str, Any]:
        async def _connect():
            async with aiosmtplib.SMTP(**self._smtp_kwargs()) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
        try:
            asyncio.run(_connect())
            return {'success': True, 'message': f"Connected to {self.config.smtp_host}:{self.config.smtp_port}"}
        except Exception as e:
            return {'success': False, 'error': f"Connection test failed: {e}"}


def _attachment_base64(content: Any) -> str:
    if isinstance(content, bytes):
        return base64.b64encode(content).decode("ascii")
    # Strings are assumed to already be base64 (frontend uploads)
    return str(content)


class TransactionalEmailService:
    """Main transactional email service that delegates to provider implementations."""

    def __init__(self, config: Optional[TransactionalEmailConfig] = None):
        self.config = config or TransactionalEmailConfig()
        self.provider_service = None
        self.template_env = None
        self._setup_provider()
        self._setup_templates()

    @property
    def development_mode(self) -> bool:
        return self.provider_service is None

    def _setup_provider(self):
        """Setup the email provider service."""
        if not self.config.is_configured():
            logger.warning("Email provider not configured; running in development mode")
            return

        if self.config.provider == EmailProvider.MANDRILL:
            self.provider_service = MandrillEmailService(self.config)
            logger.info("Initialized Mandrill email service")
        elif self.config.provider == EmailProvider.SMTP:
            self.provider_service = SmtpEmailService(self.config)
            logger.info("Initialized SMTP email service")

    def _setup_templates(self):
        """Setup Jinja2 template environment."""
        template_path = Path(self.config.template_dir)
        if not template_path.exists():
            logger.warning(f"Email template directory not found: {template_path}")
        self.template_env = Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=select_autoescape(["html"]),
        )

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Send an email via the configured transactional email service.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            text_content: Optional plain text content
            kwargs: from_email, from_name, reply_to, attachments, tags

        Returns:
            Dict with 'success', 'provider', 'message_id', and 'error' keys
        """
        if self.development_mode:
            logger.info(f"[development] email to {to_email}: {subject}")
            return {
                'success': True,
                'development': True,
                'provider': 'development',
                'message_id': f"dev-{int(datetime.now(UTC).timestamp() * 1000)}"
            }

        try:
            logger.info(f"Sending email to {to_email} via {self.config.provider.value}")
            result = await self.provider_service.send_email(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
                **kwargs
            )
            if result['success']:
                logger.info(f"Email sent successfully to {to_email} via {result['provider']}")
            else:
                logger.error(f"Email sending failed: {result['error']}")
            return result

        except Exception as e:
            error_msg = f"Email service error: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return {
                'success': False,
                'error': error_msg
            }

    def send_email_sync(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """Blocking wrapper for sync request handlers."""
        return asyncio.run(self.send_email(to_email, subject, html_content, text_content, **kwargs))

    def list_templates(self) -> List[str]:
        template_path = Path(self.config.template_dir)
        if not template_path.exists():
            return []
        # Names starting with "_" are layouts, not sendable templates
        return sorted(p.stem for p in template_path.glob("*.html") if not p.stem.startswith("_"))

    def render_template(self, template_name: str, context: Dict[str, Any]) -> tuple[str, str]:
        """
        Render email template with context.

        Returns:
            Tuple of (html_content, text_content)
        """
        try:
            html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        except Exception as e:
            raise RuntimeError(f"Template rendering failed for {template_name}: {str(e)}") from e

        try:
            text_content = self.template_env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_content = self._html_to_text(html_content)

        return html_content, text_content

    def render_fallback(self, subject: str, context: Dict[str, Any]) -> tuple[str, str]:
        """Plain key/value email used when a template is missing or broken."""
        rows = "".join(
            f"<tr><td><strong>{escape(str(k))}</strong></td><td>{escape(str(v))}</td></tr>"
            for k, v in context.items()
            if not isinstance(v, (dict, list))
        )
        html = f"<html><body><h2>{escape(subject)}</h2><table>{rows}</table></body></html>"
        return html, self._html_to_text(html)

    def _html_to_text(self, html_content: str) -> str:
        """Convert HTML to basic text content."""
        text = re.sub(r'<(br|/p|/tr|/h\d)[^>]*>', '\n', html_content)
        text = re.sub(r'<[^>]+>', '', text)
        text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
        text = text.replace('&quot;', '"').replace('&#34;', '"').replace('&#39;', "'")
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r'\n\s*\n+', '\n\n', text)
        return text.strip()

    def test_connection(self) -> Dict[str, Any]:
        """Test email service configuration and connectivity."""
        validation_errors = self.config.validate()
        if validation_errors:
            return {
                'success': False,
                'error': f"Configuration errors: {', '.join(validation_errors)}"
            }
        if not self.provider_service:
            return {
                'success': False,
                'error': 'Email provider service not initialized'
            }
        result = self.provider_service.ping()
        result['provider'] = self.config.provider.value
        return result


# Global email service instance
_email_service = None


def get_transactional_email_service() -> TransactionalEmailService:
    """Get singleton transactional email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = TransactionalEmailService()
    return _email_service


def reset_transactional_email_service() -> None:
    """Drop the cached instance so the next call re-reads the environment."""
    global _email_service
    _email_service = None
