import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable

from config import settings

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, html: str) -> bool:
    """
    Send an HTML email.
    Returns True if successful, False otherwise. Never raises: callers treat
    email as a side effect that must not fail the request.
    """
    if not settings.SMTP_EMAIL or not settings.SMTP_PASSWORD:
        logger.warning("Email configuration missing; not sending '%s' to %s", subject, to_email)
        return False

    try:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{settings.APP_NAME} <{settings.SMTP_EMAIL}>"
        message["To"] = to_email
        message.attach(MIMEText(html, "html"))

        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
            server.starttls()
            server.login(settings.SMTP_EMAIL, settings.SMTP_PASSWORD)
            server.send_message(message)

        logger.info("Email '%s' sent to %s", subject, to_email)
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False


def _wrap(title: str, body: str) -> str:
    return f"""
    <html>
        <body style="font-family: Arial, sans-serif; padding: 20px; background-color: #f4f4f4;">
            <div style="max-width: 600px; margin: 0 auto; background-color: white; padding: 30px; border-radius: 10px;">
                <h2 style="color: #333;">{html.escape(title)}</h2>
                {body}
                <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
                <p style="color: #999; font-size: 12px; text-align: center;">
                    This is an automated message from {settings.APP_NAME}.
                </p>
            </div>
        </body>
    </html>
    """


def _text(value) -> str:
    """Escape a stored value for interpolation into an HTML body."""
    return html.escape(str(value))


def send_order_confirmation(order: dict) -> bool:
    customer = order.get("customer") or {}
    rows = "".join(
        f"<tr><td>{_text(item.get('name'))} ({_text(item.get('size'))})</td><td>x{_text(item.get('quantity'))}</td>"
        f"<td>${item.get('item_total', 0):.2f}</td></tr>"
        for item in order.get("items", [])
    )
    body = f"""
        <p>Hi {_text(customer.get('name') or 'there')}, thanks for your order!</p>
        <p>Order number: <strong>{_text(order['order_number'])}</strong></p>
        <table style="width: 100%;">{rows}</table>
        <p>Subtotal: ${order.get('subtotal', 0):.2f}<br>
           Delivery: ${order.get('delivery_fee', 0):.2f}<br>
           Tax: ${order.get('tax', 0):.2f}<br>
           Discount: -${order.get('discount', 0):.2f}<br>
           <strong>Total: ${order.get('total_price', 0):.2f}</strong></p>
    """
    sent = False
    if customer.get("email"):
        sent = send_email(customer["email"], f"{settings.APP_NAME} - Order {order['order_number']} confirmed", _wrap("Order confirmed", body))
    if settings.ADMIN_NOTIFICATION_EMAIL:
        send_email(settings.ADMIN_NOTIFICATION_EMAIL, f"New order {order['order_number']}", _wrap("New order received", body))
    return sent


def send_contact_reply(contact: dict, reply: str) -> bool:
    body = f"""
        <p>Hi {_text(contact.get('name') or 'there')},</p>
        <p>{_text(reply)}</p>
        <p style="color: #666; font-size: 14px;">Your original message: <em>{_text(contact.get('message', ''))}</em></p>
    """
    return send_email(contact["email"], f"Re: {contact.get('subject', 'Your message')}", _wrap("We replied to your message", body))


def send_newsletter(recipients: Iterable[str], subject: str, content: str) -> dict:
    sent, failed = 0, 0
    for email in recipients:
        if send_email(email, subject, _wrap(subject, content)):
            sent += 1
        else:
            failed += 1
    return {"sent": sent, "failed": failed}
