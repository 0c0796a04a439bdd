import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from brandvigilante.core import config

logger = logging.getLogger(__name__)

DEFAULT_SENDER = 'noreply@janusipm.com'


def build_message(to_email: str, subject: str, html_body: str) -> MIMEMultipart:
    message = MIMEMultipart()
    message['From'] = config.SMTP_FROM or DEFAULT_SENDER
    message['To'] = to_email
    message['Subject'] = subject
    message.attach(MIMEText(html_body, 'html'))
    return message


def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """Deliver one HTML message; returns False instead of raising on SMTP failure."""
    if not config.SMTP_HOST:
        logger.warning('SMTP_HOST is not configured; email "%s" was not sent', subject)
        return False

    message = build_message(to_email, subject, html_body)
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30) as server:
            if config.SMTP_USE_TLS:
                server.starttls()
            if config.SMTP_USER:
                server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.sendmail(message['From'], [to_email], message.as_string())
    except (smtplib.SMTPException, OSError):
        logger.exception('Failed to send email "%s"', subject)
        return False

    logger.info('Sent email "%s"', subject)
    return True


def _link_email(heading: str, intro: str, button: str, url: str, footer: str) -> str:
    safe_url = escape(url, quote=True)
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #1a56db;">{heading}</h2>
        <p>{intro}</p>
        <div style="margin: 30px 0;">
            <a href="{safe_url}"
               style="background-color: #1a56db; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px;">
                {button}
            </a>
        </div>
        <p>Or copy and paste this link into your browser:</p>
        <p style="word-break: break-all;">{safe_url}</p>
        <p>{footer}</p>
        <p style="color: #6b7280; font-size: 12px;">This is an automated message, please do not reply to this email.</p>
    </div>
    """


def send_verification_email(to_email: str, token: str) -> bool:
    verify_url = f'{config.ORIGIN}/verify-email?token={token}'
    body = _link_email(
        'Verify Your Email Address',
        'Thank you for signing up for JanusIPM. Please confirm your email address to activate your account.',
        'Verify Email',
        verify_url,
        f'This link will expire in {config.VERIFICATION_TOKEN_DAYS} days.',
    )
    return send_email(to_email, 'Verify your JanusIPM email address', body)


def send_password_reset_email(to_email: str, token: str) -> bool:
    reset_url = f'{config.ORIGIN}/reset-password?token={token}'
    body = _link_email(
        'Reset Your Password',
        "We received a request to reset your password. If you didn't make this request, you can safely ignore this email.",
        'Reset Password',
        reset_url,
        f'This link will expire in {config.PASSWORD_RESET_TOKEN_HOURS} hours.',
    )
    return send_email(to_email, 'Reset your JanusIPM password', body)


def send_lead_notification(lead: dict[str, str], existing_user: bool) -> bool:
    if not config.ADMIN_NOTIFICATION_EMAIL:
        logger.warning('ADMIN_NOTIFICATION_EMAIL is not configured; lead notification skipped')
        return False

    rows = ''.join(
        f'<tr><td><strong>{escape(label)}</strong></td><td>{escape(value or "")}</td></tr>'
        for label, value in lead.items()
    )
    status_line = 'This email already belongs to an account.' if existing_user else 'A new lead account was created.'
    body = f'<h2>New contact request</h2><p>{status_line}</p><table>{rows}</table>'
    return send_email(config.ADMIN_NOTIFICATION_EMAIL, 'New JanusIPM lead', body)


def send_lead_confirmation(to_email: str, first_name: str) -> bool:
    body = (
        f'<p>Hi {escape(first_name)},</p>'
        '<p>Thank you for your interest in BrandVigilante. Our team will reach out to you soon to discuss your needs.</p>'
        '<p>Best regards,<br/>BrandVigilante Team</p>'
    )
    return send_email(to_email, 'Thank you for your interest in BrandVigilante', body)


def send_test_email(to_email: str) -> bool:
    return send_email(to_email, 'JanusIPM test email', '<p>SMTP settings are working.</p>')
