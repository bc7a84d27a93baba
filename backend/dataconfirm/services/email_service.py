"""
Email Service for the Data Confirmation service
===============================================
Handles all email sending functionality including:
- Submission reports (HTML body + PDF attachment)
- Password reset emails

Delivery is over SMTP via aiosmtplib.
"""

import aiosmtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, List, Tuple, Union
from datetime import datetime

from dataconfirm.core.config import settings
from dataconfirm.core.logging_config import logger

# (filename, content, mime subtype)
Attachment = Tuple[str, bytes, str]


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.start_tls = settings.SMTP_START_TLS
        self.timeout = settings.SMTP_TIMEOUT
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: Union[str, List[str]],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        recipients = [to_email] if isinstance(to_email, str) else list(to_email)
        if not recipients:
            logger.warning("[Email] No recipients, skipping email send")
            return False

        return await self._send_via_smtp(recipients, subject, html_content, text_content, attachments)

    def _build_message(
        self,
        recipients: List[str],
        subject: str,
        html_content: str,
        text_content: Optional[str],
        attachments: Optional[List[Attachment]]
    ) -> MIMEMultipart:
        body = MIMEMultipart("alternative")
        # Add plain text version (fallback)
        if text_content:
            body.attach(MIMEText(text_content, "plain", "utf-8"))
        body.attach(MIMEText(html_content, "html", "utf-8"))

        if attachments:
            message = MIMEMultipart("mixed")
            message.attach(body)
            for filename, content, subtype in attachments:
                part = MIMEApplication(content, _subtype=subtype)
                part.add_header("Content-Disposition", "attachment", filename=filename)
                message.attach(part)
        else:
            message = body

        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject
        return message

    async def _send_via_smtp(
        self,
        recipients: List[str],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None
    ) -> bool:
        """Send email via SMTP"""
        try:
            message = self._build_message(recipients, subject, html_content, text_content, attachments)

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.start_tls,
                timeout=self.timeout
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {', '.join(recipients)}: {subject}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {', '.join(recipients)}: {e}")
            return False

    async def send_password_reset_email(
        self,
        to_email: str,
        user_name: str,
        reset_token: str
    ) -> bool:
        """Send password reset link"""
        reset_link = f"{self.frontend_url}/reset-password?token={reset_token}"
        expires = settings.PASSWORD_RESET_EXPIRE_MINUTES

        subject = "Tetapan semula kata laluan - JPA Data Confirmation"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: #1f3a93; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
                .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
                .button {{ display: inline-block; background: #1f3a93; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; margin: 20px 0; }}
                .warning {{ background: #fef3cd; border: 1px solid #ffc107; padding: 15px; border-radius: 8px; margin: 20px 0; }}
                .footer {{ text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>Password Reset Request</h1>
                </div>
                <div class="content">
                    <p>Hi {user_name or 'there'},</p>
                    <p>We received a request to reset your password. Click the button below to create a new password:</p>
                    <p style="text-align: center;">
                        <a href="{reset_link}" class="button">Reset Password</a>
                    </p>
                    <div class="warning">
                        <strong>Security Notice:</strong> This link will expire in {expires} minutes. If you didn't request a password reset, please ignore this email.
                    </div>
                    <p style="font-size: 14px; color: #6b7280;">
                        Or copy and paste this link in your browser:<br>
                        <code style="background: #e5e7eb; padding: 4px 8px; border-radius: 4px; word-break: break-all;">{reset_link}</code>
                    </p>
                </div>
                <div class="footer">
                    <p>&copy; {datetime.utcnow().year} {self.from_name}</p>
                </div>
            </div>
        </body>
        </html>
        """

        text_content = f"""
        Password Reset Request

        Hi {user_name or 'there'},

        We received a request to reset your password. Open the link below to create a new password:

        {reset_link}

        This link will expire in {expires} minutes.

        If you didn't request a password reset, please ignore this email.
        """

        return await self.send_email(to_email, subject, html_content, text_content)


# Singleton instance
email_service = EmailService()
