"""New-order e-mail to the shop owner. Best effort: failures are logged, never raised."""
import logging
import os
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Any, Dict, List, Mapping

from aggregator import LEGACY, line_total_of, order_shape, total_of

logger = logging.getLogger(__name__)


def order_summary(order: Mapping) -> Dict[str, Any]:
    lines: List[Dict[str, Any]] = []
    if order_shape(order) == LEGACY:
        snapshot = order.get("shoe") or order.get("apparel") or {}
        lines.append({"name": snapshot.get("name", ""), "quantity": order.get("quantity", 1),
                      "totalPrice": total_of(order)})
    else:
        for line in order.get("items") or []:
            lines.append({"name": (line.get("item") or {}).get("name", ""), "quantity": line.get("quantity", 1),
                          "totalPrice": line_total_of(line)})
    return {
        "orderId": order.get("orderId"),
        "customerName": order.get("customerName", ""),
        "customerPhone": order.get("customerPhone", ""),
        "paymentMethod": order.get("paymentMethod"),
        "totalPrice": total_of(order),
        "items": lines,
    }


def render_email(summary: Mapping) -> EmailMessage:
    items_html = "".join(
        f"<li>{escape(str(i['name']))} (x{i['quantity']}) - {i['totalPrice']:,.2f}</li>" for i in summary["items"]
    )
    message = EmailMessage()
    message["Subject"] = f"New Order Received: {summary['orderId']}"
    message.set_content(
        f"Order {summary['orderId']} from {summary['customerName']}, total {summary['totalPrice']}"
    )
    message.add_alternative(
        "<h1>New Order Received!</h1>"
        f"<p><strong>Order ID:</strong> {escape(str(summary['orderId']))}</p>"
        f"<p><strong>Customer:</strong> {escape(str(summary['customerName']))}"
        f" ({escape(str(summary['customerPhone']))})</p>"
        f"<p><strong>Payment:</strong> {escape(str(summary['paymentMethod']))}</p>"
        f"<p><strong>Total:</strong> {summary['totalPrice']:,.2f}</p>"
        f"<ul>{items_html}</ul>",
        subtype="html",
    )
    return message


def notify_new_order(order: Mapping) -> bool:
    """Send the notification; returns whether it went out."""
    sender = os.getenv("EMAIL")
    password = os.getenv("EMAIL_PASS")
    if not sender or not password:
        logger.info("EMAIL/EMAIL_PASS not set, skipping notification for %s", order.get("orderId"))
        return False

    try:
        message = render_email(order_summary(order))
        message["From"] = sender
        message["To"] = sender
        host = os.getenv("SMTP_HOST", "smtp.gmail.com")
        port = int(os.getenv("SMTP_PORT", "465"))
        with smtplib.SMTP_SSL(host, port, timeout=10) as smtp:
            smtp.login(sender, password)
            smtp.send_message(message)
    except Exception:
        logger.exception("Failed to send new order notification for %s", order.get("orderId"))
        return False
    return True
