import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from apscheduler.jobstores.base import JobLookupError

from storefront.services.pricing import format_cents

log = logging.getLogger(__name__)

JOB_PREFIX = "notify-"


@dataclass(frozen=True)
class SummaryLine:
    product_name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


@dataclass(frozen=True)
class OrderSummary:
    """
    Detached snapshot of a committed order. Built inside the request, handed to
    a background job, so it must not hold ORM instances.
    """

    order_id: int
    order_number: str
    status: str
    customer_name: str
    customer_email: Optional[str]
    phone: str
    shipping_address: str
    shipping_method: str
    lines: Tuple[SummaryLine, ...]
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> "OrderSummary":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            status=order.status,
            customer_name=order.customer_name,
            customer_email=order.email,
            phone=order.phone,
            shipping_address=order.full_address,
            shipping_method=order.shipping_method,
            lines=tuple(
                SummaryLine(l.product_name, l.quantity, l.unit_price_cents, l.line_total_cents)
                for l in order.lines
            ),
            subtotal_cents=order.subtotal_cents,
            shipping_cents=order.shipping_cents,
            tax_cents=order.tax_cents,
            total_cents=order.total_cents,
            created_at=order.created_at,
        )


def render_order_email(summary: OrderSummary) -> Tuple[str, str, str]:
    """Return (subject, text, html). Output depends only on the summary."""
    verb = "Received" if summary.status == "pending" else "Updated"
    subject = f"Order {verb} #{summary.order_number}"

    text_lines = [
        f"Order #{summary.order_number} ({summary.status.upper()})",
        "",
        f"Name: {summary.customer_name}",
        f"Email: {summary.customer_email or '-'}",
        f"Phone: {summary.phone}",
        f"Shipping address: {summary.shipping_address}",
        f"Delivery: {summary.shipping_method}",
        "",
    ]
    for l in summary.lines:
        text_lines.append(
            f"{l.quantity} x {l.product_name} @ {format_cents(l.unit_price_cents)}"
            f" = {format_cents(l.line_total_cents)}"
        )
    text_lines += [
        "",
        f"Subtotal: {format_cents(summary.subtotal_cents)}",
        f"Shipping: {format_cents(summary.shipping_cents)}",
        f"Tax: {format_cents(summary.tax_cents)}",
        f"Total: {format_cents(summary.total_cents)}",
    ]
    text = "\n".join(text_lines)

    rows = "".join(
        "<tr><td>{}</td><td>{}</td><td>{}</td><td>{}</td></tr>".format(
            html.escape(l.product_name),
            l.quantity,
            format_cents(l.unit_price_cents),
            format_cents(l.line_total_cents),
        )
        for l in summary.lines
    )
    body = (
        f"<h1>Order {verb}</h1>"
        f"<p>Order ID: <strong>#{html.escape(summary.order_number)}</strong>"
        f" &middot; {html.escape(summary.status.upper())}</p>"
        f"<p>{html.escape(summary.customer_name)}<br>{html.escape(summary.shipping_address)}</p>"
        "<table><thead><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f"<p><strong>Total Amount:</strong> {format_cents(summary.total_cents)}</p>"
    )
    return subject, text, body


class NotificationService:
    """
    Outbound order notifications. Delivery runs as a one-off job on the
    background scheduler when one is running, inline otherwise. Failures are
    logged and reported through the return value, never raised.
    """

    def __init__(self, mailer, scheduler=None, admin_email: Optional[str] = None):
        self.mailer = mailer
        self.scheduler = scheduler
        self.admin_email = admin_email

    def recipients_for(self, summary: OrderSummary) -> List[str]:
        recipients = []
        for addr in (self.admin_email, summary.customer_email):
            if addr and addr not in recipients:
                recipients.append(addr)
        return recipients

    def notify_order_created(
        self, summary: OrderSummary, recipients: Optional[Sequence[str]] = None
    ) -> None:
        recipients = list(recipients) if recipients is not None else self.recipients_for(summary)
        if not recipients:
            log.info("order %s: no notification recipients", summary.order_number)
            return
        try:
            if self.scheduler is not None and self.scheduler.running:
                self.scheduler.add_job(
                    self.deliver,
                    args=(summary, recipients),
                    id=f"{JOB_PREFIX}{summary.order_number}",
                    replace_existing=True,
                )
            else:
                self.deliver(summary, recipients)
        except Exception:
            log.exception("order %s: could not dispatch notification", summary.order_number)

    def deliver(self, summary: OrderSummary, recipients: Sequence[str]) -> bool:
        try:
            subject, text, body = render_order_email(summary)
        except Exception:
            log.exception("order %s: rendering notification failed", summary.order_number)
            return False

        delivered = True
        for to in recipients:
            try:
                self.mailer.send(to, subject, text, html=body)
                log.info("order %s: notification sent to %s", summary.order_number, to)
            except Exception:
                delivered = False
                log.exception("order %s: notification to %s failed", summary.order_number, to)
        return delivered

    def flush_pending(self) -> int:
        """
        Deliver inline every notification still queued on the scheduler. Called
        before the scheduler shuts down, which would otherwise drop them.
        """
        if self.scheduler is None or not self.scheduler.running:
            return 0
        flushed = 0
        for job in self.scheduler.get_jobs():
            if not job.id.startswith(JOB_PREFIX):
                continue
            try:
                self.scheduler.remove_job(job.id)
            except JobLookupError:
                # already handed to the executor; shutdown waits for it
                continue
            self.deliver(*job.args)
            flushed += 1
        if flushed:
            log.warning("flushed %d queued notification(s) before shutdown", flushed)
        return flushed

    def health_check(self) -> bool:
        try:
            return bool(self.mailer.health_check())
        except Exception:
            return False
