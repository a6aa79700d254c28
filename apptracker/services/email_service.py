import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from apptracker.core.config import settings
from apptracker.core.logging import mask_email

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP notification sender. ``send_notification`` reports failure as False and never raises."""

    def __init__(
        self,
        smtp_server: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        use_tls: Optional[bool] = None,
        timeout: float = 30.0,
    ):
        self.smtp_server = smtp_server or settings.SMTP_SERVER
        self.smtp_port = int(smtp_port or settings.SMTP_PORT)
        self.smtp_username = smtp_username if smtp_username is not None else settings.SMTP_USERNAME
        self.smtp_password = smtp_password if smtp_password is not None else settings.SMTP_PASSWORD
        self.from_email = from_email or settings.FROM_EMAIL or self.smtp_username
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self.timeout = timeout

        if self.configured:
            logger.info(f"[Email] EmailService initialized - Server: {self.smtp_server}:{self.smtp_port}, From: {self.from_email}")
        else:
            logger.warning(f"[Email] EmailService not configured - Server: {self.smtp_server}, From: {self.from_email}")

    @property
    def configured(self) -> bool:
        return bool(self.smtp_server and self.from_email)

    def send_notification(self, to_email: str, subject: str, body: str) -> bool:
        """Send a plain-text email with an HTML alternative. True only when the server accepted it."""
        if not self.configured:
            logger.warning("[Email] SMTP configuration incomplete, not sending")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(self._create_html(subject, body), "html"))
        return self._send_email(msg, to_email)

    def _create_html(self, subject: str, body: str) -> str:
        paragraphs = "".join(f"<p>{escape(line)}</p>" for line in body.splitlines() if line.strip())
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <title>{escape(subject)}</title>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <h2>{escape(subject)}</h2>
                {paragraphs}
            </div>
        </body>
        </html>
        """

    def _send_email(self, msg: MIMEMultipart, to_email: str) -> bool:
        """Send email using SMTP"""
        try:
            context = ssl.create_default_context()
            if self.smtp_port == 465:
                # Implicit TLS
                with smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, context=context, timeout=self.timeout) as server:
                    self._login(server)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                    if self.use_tls:
                        server.starttls(context=context)
                    self._login(server)
                    server.send_message(msg)

            logger.info(f"[Email] Sent '{msg['Subject']}' to {mask_email(to_email)}")
            return True

        except smtplib.SMTPException as e:
            logger.error(f"[Email] SMTP error sending to {mask_email(to_email)}: {e}")
            if "553" in str(e) or "relay" in str(e).lower():
                logger.error("[Email] FROM_EMAIL probably has to match SMTP_USERNAME for this provider")
            return False
        except (OSError, ssl.SSLError) as e:
            logger.error(f"[Email] Connection error sending to {mask_email(to_email)}: {e}")
            return False

    def _login(self, server: smtplib.SMTP) -> None:
        if self.smtp_username and self.smtp_password:
            server.login(self.smtp_username, self.smtp_password)
