import threading

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler

from storefront.adapters.mailer import MockMailerAdapter
from storefront.services.notification_service import (
    NotificationService,
    OrderSummary,
    SummaryLine,
    render_order_email,
)


def _summary(**overrides):
    fields = dict(
        order_id=1,
        order_number="ORD-1700000000000-042",
        status="pending",
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        phone="555-0100",
        shipping_address="1 Analytical Way, London, LDN N1 1AA",
        shipping_method="standard",
        lines=(SummaryLine("Tea <100g>", 2, 300, 600),),
        subtotal_cents=600,
        shipping_cents=0,
        tax_cents=0,
        total_cents=600,
    )
    fields.update(overrides)
    return OrderSummary(**fields)


def test_render_lists_lines_and_totals():
    subject, text, body = render_order_email(_summary())
    assert subject == "Order Received #ORD-1700000000000-042"
    assert "2 x Tea <100g> @ 3.00 = 6.00" in text
    assert "Total: 6.00" in text
    assert "Tea &lt;100g&gt;" in body


def test_recipients_are_admin_and_customer_without_duplicates():
    svc = NotificationService(MockMailerAdapter(), admin_email="ada@example.com")
    assert svc.recipients_for(_summary()) == ["ada@example.com"]

    svc = NotificationService(MockMailerAdapter(), admin_email=None)
    assert svc.recipients_for(_summary(customer_email=None)) == []


def test_delivery_failure_is_reported_not_raised():
    mailer = MockMailerAdapter(fail=True)
    svc = NotificationService(mailer, admin_email="admin@shop.test")
    assert svc.deliver(_summary(), ["admin@shop.test"]) is False
    # dispatch swallows it as well
    svc.notify_order_created(_summary())
    assert mailer.outbox == []


def test_dispatch_runs_on_scheduler_when_running():
    mailer = MockMailerAdapter()
    done = threading.Event()
    scheduler = BackgroundScheduler()
    scheduler.add_listener(lambda event: done.set(), EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.start()
    try:
        svc = NotificationService(mailer, scheduler=scheduler, admin_email="admin@shop.test")
        svc.notify_order_created(_summary())
        assert done.wait(5)
    finally:
        scheduler.shutdown(wait=True)
    assert sorted(m["to"] for m in mailer.outbox) == ["ada@example.com", "admin@shop.test"]


def test_queued_notifications_are_flushed_before_shutdown():
    mailer = MockMailerAdapter()
    scheduler = BackgroundScheduler()
    # paused: jobs stay queued, as they would right before shutdown
    scheduler.start(paused=True)
    try:
        svc = NotificationService(mailer, scheduler=scheduler, admin_email="admin@shop.test")
        svc.notify_order_created(_summary())
        assert mailer.outbox == []
        assert svc.flush_pending() == 1
        assert scheduler.get_jobs() == []
    finally:
        scheduler.shutdown(wait=True)
    assert len(mailer.outbox) == 2


def test_flush_without_scheduler_is_a_no_op():
    assert NotificationService(MockMailerAdapter()).flush_pending() == 0


def test_health_reflects_mailer():
    assert NotificationService(MockMailerAdapter()).health_check() is True
    assert NotificationService(MockMailerAdapter(fail=True)).health_check() is False
