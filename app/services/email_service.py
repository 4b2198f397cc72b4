import html
import smtplib
from email.mime.application import MIMEApplication
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from pathlib import Path
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending transactional emails via Gmail SMTP."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "KM Pyrotech"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[List[Path]] = None
    ) -> bool:
        """
        Send an email using Gmail SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body of the email
            text_content: Plain text body (optional fallback)
            attachments: Files to attach

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        try:
            msg = MIMEMultipart('mixed')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            body = MIMEMultipart('alternative')
            if text_content:
                body.attach(MIMEText(text_content, 'plain'))
            body.attach(MIMEText(html_content, 'html'))
            msg.attach(body)

            for path in attachments or []:
                part = MIMEApplication(Path(path).read_bytes(), Name=Path(path).name)
                part['Content-Disposition'] = f'attachment; filename="{Path(path).name}"'
                msg.attach(part)

            # Connect and send with timeout
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except TimeoutError:
            logger.error("SMTP connection timed out")
            return False
        except OSError as e:
            logger.error(f"Network error sending email: {e}")
            return False

    def send_invoice_email(
        self,
        to_email: str,
        order_id: str,
        invoice_path: Path,
        customer_name: str = "Customer"
    ) -> bool:
        """Send the order invoice as an attachment."""
        subject = f"{self.from_name} - Your Order Invoice"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; color: #222;">
            <p>Dear {html.escape(customer_name)},</p>
            <p>Thank you for your order! Your order ID is <strong>{html.escape(order_id)}</strong>.</p>
            <p>Please find your invoice attached.</p>
            <p>Regards,<br/>{html.escape(self.from_name)}</p>
        </body>
        </html>
        """
        text_content = (
            f"Thank you for your order {order_id}! Please find your invoice attached."
        )

        return self.send_email(
            to_email, subject, html_content, text_content, attachments=[invoice_path]
        )


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    from app.config import settings

    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME
    )
