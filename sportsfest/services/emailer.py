"""Email service with SMTP and template support."""

from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict

from flask import current_app, render_template
from jinja2 import Template, TemplateNotFound

from sportsfest.extensions import db
from sportsfest.models import EmailMessage, EmailStatus
from sportsfest.services.timeutils import utcnow


class EmailerError(Exception):
    """Raised when email operations fail."""
    pass


FALLBACK_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{{ subject }}</title>
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background: #0077b6; color: white; padding: 20px; text-align: center; }
        .content { padding: 20px; background: #f8f9fa; }
        .footer { padding: 10px; text-align: center; color: #666; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{{ app_name }}</h1>
        </div>
        <div class="content">
            <h2>{{ template_key.replace('_', ' ').title() }}</h2>
            {% for key, value in context.items() %}
                {% if key not in ['app_name', 'base_url', 'subject', 'template_key'] %}
                    <p><strong>{{ key.replace('_', ' ').title() }}:</strong> {{ value }}</p>
                {% endif %}
            {% endfor %}
        </div>
        <div class="footer">
            <p>This is an automated email from {{ app_name }}.</p>
        </div>
    </div>
</body>
</html>
"""


class EmailService:
    """Send templated emails over SMTP, or log them in development mode."""

    def __init__(self, config=None):
        config = config if config is not None else current_app.config
        self.enabled = bool(config.get('EMAIL_ENABLED'))
        self.smtp_host = config.get('SMTP_HOST')
        self.smtp_port = int(config.get('SMTP_PORT') or 587)
        self.smtp_username = config.get('SMTP_USERNAME')
        self.smtp_password = config.get('SMTP_PASSWORD')
        self.smtp_use_tls = bool(config.get('SMTP_USE_TLS', True))
        self.from_email = config.get('FROM_EMAIL') or self.smtp_username or 'noreply@sportsfest.local'
        self.from_name = config.get('FROM_NAME', 'SportsFest')

        if self.enabled and not all([self.smtp_host, self.smtp_username, self.smtp_password]):
            raise EmailerError("SMTP configuration incomplete. Check environment variables.")

    def send_email(
        self,
        to_email: str,
        subject: str,
        template_key: str,
        context: Dict = None,
        to_name: str = None,
        org_id: str = None,
    ) -> EmailMessage:
        """
        Send an email using a template.

        Args:
            to_email: Recipient email address
            subject: Email subject line
            template_key: Template filename without extension (e.g., 'daily_digest')
            context: JSON-serializable template variables
            to_name: Recipient name (optional)
            org_id: Organization the email concerns (optional)

        Returns:
            EmailMessage: The created email record
        """
        context = dict(context or {})

        email_message = EmailMessage(
            org_id=org_id,
            to_email=to_email,
            to_name=to_name,
            from_email=self.from_email,
            from_name=self.from_name,
            subject=subject,
            template_key=template_key,
            status=EmailStatus.QUEUED,
            context=context,
        )

        try:
            html_content = self._render_template(template_key, subject, context)
            email_message.html_content = html_content
            email_message.status = EmailStatus.SENDING

            db.session.add(email_message)
            db.session.commit()

            self._deliver(to_email=to_email, to_name=to_name, subject=subject, html_content=html_content)

            email_message.status = EmailStatus.SENT
            email_message.sent_at = utcnow()
            db.session.commit()

            return email_message

        except Exception as e:
            db.session.add(email_message)
            email_message.status = EmailStatus.FAILED
            email_message.error_message = str(e)
            db.session.commit()
            raise EmailerError(f"Failed to send email: {str(e)}")

    def _render_template(self, template_key: str, subject: str, context: Dict) -> str:
        """Render email template with context."""
        context = dict(context)
        context.update({
            'app_name': self.from_name,
            'base_url': current_app.config.get('BASE_URL', 'http://localhost:5000'),
            'subject': subject,
        })
        try:
            return render_template(f'email/{template_key}.html', **context)
        except TemplateNotFound:
            return self._render_fallback_template(template_key, context)

    def _render_fallback_template(self, template_key: str, context: Dict) -> str:
        template = Template(FALLBACK_TEMPLATE)
        return template.render(template_key=template_key, context=context, **context)

    def _deliver(self, to_email: str, subject: str, html_content: str, to_name: str = None):
        if not self.enabled:
            # Development mode - log email instead of sending
            current_app.logger.info(f"""
        ========== EMAIL (Development Mode) ==========
        To: {to_name + ' ' if to_name else ''}<{to_email}>
        Subject: {subject}
        ==============================================
        """)
            return
        self._send_smtp_email(to_email=to_email, to_name=to_name, subject=subject, html_content=html_content)

    def _send_smtp_email(self, to_email: str, subject: str, html_content: str, to_name: str = None):
        """Send email via SMTP."""
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email
        msg['To'] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_content, 'html'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                if self.smtp_use_tls:
                    server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

        except Exception as e:
            raise EmailerError(f"SMTP error: {str(e)}")

    def retry_failed_email(self, email_id: str) -> EmailMessage:
        """Retry sending a failed email."""
        email_message = db.session.get(EmailMessage, email_id)

        if not email_message:
            raise EmailerError("Email message not found")

        if email_message.retry_count >= email_message.max_retries:
            raise EmailerError("Maximum retries exceeded")

        try:
            email_message.retry_count += 1
            email_message.status = EmailStatus.SENDING
            email_message.error_message = None

            self._deliver(
                to_email=email_message.to_email,
                to_name=email_message.to_name,
                subject=email_message.subject,
                html_content=email_message.html_content or '',
            )

            email_message.status = EmailStatus.SENT
            email_message.sent_at = utcnow()
            db.session.commit()

            return email_message

        except Exception as e:
            db.session.add(email_message)
            email_message.status = EmailStatus.FAILED
            email_message.error_message = str(e)
            db.session.commit()
            raise EmailerError(f"Retry failed: {str(e)}")


def send_email(
    to_email: str,
    subject: str,
    template_key: str,
    context: Dict = None,
    **kwargs
) -> EmailMessage:
    """
    Convenience function to send emails.

    This function can be used directly or queued as a background job.
    """
    return EmailService().send_email(
        to_email=to_email,
        subject=subject,
        template_key=template_key,
        context=context,
        **kwargs
    )


__all__ = ['EmailService', 'EmailerError', 'send_email']
