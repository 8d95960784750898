from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from backend.app import models
from backend.app.services import (
    BillingConflictError,
    BillingSettings,
    BillingValidationError,
    DeliveryAggregator,
    DeliverySchedulerService,
    InvoiceService,
    RecordNotFoundError,
    VacationService,
)

JUNE_1 = date(2024, 6, 1)
JUNE_2 = date(2024, 6, 2)
JUNE_3 = date(2024, 6, 3)


def _deliveries_for(db_session, customer_id, on=None):
    query = db_session.query(models.Delivery).filter(models.Delivery.customer_id == customer_id)
    if on is not None:
        query = query.filter(models.Delivery.delivery_date == on)
    return query.all()


def test_schedule_creates_one_delivery_per_due_customer(db_session, seed_route):
    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_1)

    assert result.scheduled == 2
    assert result.skipped == 0
    assert result.errors == []

    asha = _deliveries_for(db_session, seed_route["daily"].id, JUNE_1)
    assert len(asha) == 1
    assert asha[0].status == models.DeliveryStatus.PENDING
    assert len(asha[0].items) == 1
    item = asha[0].items[0]
    assert item.product_id == seed_route["milk"].id
    assert Decimal(item.quantity) == Decimal("2")
    assert Decimal(item.unit_price) == Decimal("60.00")
    assert Decimal(item.total_amount) == Decimal("120.00")

    bhavesh = _deliveries_for(db_session, seed_route["alternate"].id, JUNE_1)
    assert Decimal(bhavesh[0].items[0].unit_price) == Decimal("76.00")
    assert Decimal(bhavesh[0].items[0].total_amount) == Decimal("38.00")

    assert _deliveries_for(db_session, seed_route["manual"].id) == []


def test_schedule_is_idempotent(db_session, seed_route):
    DeliverySchedulerService.schedule_for_date(db_session, JUNE_1)

    second = DeliverySchedulerService.schedule_for_date(db_session, JUNE_1)

    assert second.scheduled == 0
    assert second.skipped_existing == 2
    assert db_session.query(models.Delivery).count() == 2


def test_schedule_skips_customers_whose_pattern_is_not_due(db_session, seed_route):
    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_2)

    assert result.scheduled == 1
    assert result.skipped_not_due == 1
    assert _deliveries_for(db_session, seed_route["alternate"].id) == []


def test_vacation_window_excludes_customer(db_session, seed_route):
    asha = seed_route["daily"]
    VacationService.create_window(
        db_session, customer_id=asha.id, start_date=JUNE_1, end_date=JUNE_3, reason="Travel"
    )

    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_2)

    assert result.skipped_vacation == 1
    assert result.scheduled == 0
    assert _deliveries_for(db_session, asha.id) == []


def test_deactivated_vacation_no_longer_pauses_deliveries(db_session, seed_route):
    asha = seed_route["daily"]
    window = VacationService.create_window(
        db_session, customer_id=asha.id, start_date=JUNE_1, end_date=JUNE_3
    )
    VacationService.deactivate_window(db_session, window.id)

    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_2)

    assert result.skipped_vacation == 0
    assert len(_deliveries_for(db_session, asha.id, JUNE_2)) == 1


def test_vacation_window_rejects_reversed_range(db_session, seed_route):
    with pytest.raises(BillingValidationError):
        VacationService.create_window(
            db_session,
            customer_id=seed_route["daily"].id,
            start_date=JUNE_3,
            end_date=JUNE_1,
        )


def test_mark_delivered_creates_billable_deliveries(db_session, seed_route):
    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_1, mark_delivered=True)

    assert result.auto_delivered == result.scheduled == 2
    delivery = _deliveries_for(db_session, seed_route["daily"].id, JUNE_1)[0]
    assert delivery.status == models.DeliveryStatus.DELIVERED
    assert delivery.delivery_time is not None


def test_schedule_range_folds_each_date(db_session, seed_route):
    results = DeliverySchedulerService.schedule_for_range(db_session, JUNE_1, 3)

    assert [result.date for result in results] == [JUNE_1, JUNE_2, JUNE_3]
    assert [result.scheduled for result in results] == [2, 1, 2]
    assert len(_deliveries_for(db_session, seed_route["daily"].id)) == 3
    assert len(_deliveries_for(db_session, seed_route["alternate"].id)) == 2


@pytest.mark.parametrize("days", [0, 32])
def test_schedule_range_rejects_out_of_bounds_days(db_session, seed_route, days):
    with pytest.raises(BillingValidationError):
        DeliverySchedulerService.schedule_for_range(db_session, JUNE_1, days)


def test_one_customer_failure_does_not_abort_the_batch(db_session, seed_route, monkeypatch):
    asha_id = seed_route["daily"].id
    original_build_items = DeliverySchedulerService._build_items

    def flaky_build_items(subscriptions):
        subscriptions = list(subscriptions)
        if any(subscription.customer_id == asha_id for subscription in subscriptions):
            raise SQLAlchemyError("disk I/O error")
        return original_build_items(subscriptions)

    monkeypatch.setattr(
        DeliverySchedulerService, "_build_items", staticmethod(flaky_build_items)
    )

    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_1)

    assert result.scheduled == 1
    assert len(result.errors) == 1
    assert result.errors[0].customer_id == asha_id
    assert _deliveries_for(db_session, asha_id) == []
    assert len(_deliveries_for(db_session, seed_route["alternate"].id)) == 1


def test_auto_deliver_marks_pending_deliveries(db_session, seed_route):
    DeliverySchedulerService.schedule_for_date(db_session, JUNE_1)

    result = DeliverySchedulerService.auto_deliver_pending(db_session, JUNE_1)

    assert result.delivered == 2
    assert result.errors == []
    statuses = {delivery.status for delivery in db_session.query(models.Delivery).all()}
    assert statuses == {models.DeliveryStatus.DELIVERED}


def test_auto_deliver_fills_empty_pending_delivery(db_session, seed_route):
    manual = seed_route["manual"]
    db_session.add(models.Delivery(customer_id=manual.id, delivery_date=JUNE_1))
    db_session.commit()

    result = DeliverySchedulerService.auto_deliver_pending(db_session, JUNE_1)

    assert result.delivered == 1
    delivery = _deliveries_for(db_session, manual.id, JUNE_1)[0]
    assert delivery.status == models.DeliveryStatus.DELIVERED
    assert [Decimal(item.total_amount) for item in delivery.items] == [Decimal("60.00")]


def test_status_change_is_blocked_inside_invoiced_period(db_session, delivered_june):
    InvoiceService.generate_monthly_invoices(
        db_session, 2024, 6, settings=BillingSettings(), issued_on=date(2024, 7, 1)
    )

    with pytest.raises(BillingConflictError):
        DeliverySchedulerService.update_status(
            db_session, delivered_june["delivery"].id, models.DeliveryStatus.MISSED
        )


def test_status_change_outside_invoiced_period(db_session, delivered_june):
    delivery = DeliverySchedulerService.update_status(
        db_session, delivered_june["delivery"].id, models.DeliveryStatus.PARTIAL
    )

    assert delivery.status == models.DeliveryStatus.PARTIAL


def test_status_change_for_unknown_delivery(db_session):
    with pytest.raises(RecordNotFoundError):
        DeliverySchedulerService.update_status(
            db_session, "missing", models.DeliveryStatus.DELIVERED
        )


def _invoice_june(db_session):
    return InvoiceService.generate_monthly_invoices(
        db_session, 2024, 6, settings=BillingSettings(), issued_on=date(2024, 7, 1)
    )


def test_mark_delivered_keeps_invoiced_period_pending(db_session, delivered_june):
    asha_id = delivered_june["daily"].id
    _invoice_june(db_session)

    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_2, mark_delivered=True)

    assert result.scheduled == 1
    assert result.auto_delivered == 0
    assert result.held_invoiced == 1
    assert _deliveries_for(db_session, asha_id, JUNE_2)[0].status == models.DeliveryStatus.PENDING

    invoice = db_session.query(models.Invoice).filter_by(customer_id=asha_id).one()
    delivered = DeliveryAggregator.aggregate_customer(
        db_session, asha_id, date(2024, 6, 1), date(2024, 6, 30)
    )
    assert delivered.total_amount == Decimal(invoice.total_amount)
    assert _invoice_june(db_session).generated == 0


def test_auto_deliver_leaves_invoiced_period_pending(db_session, delivered_june):
    asha_id = delivered_june["daily"].id
    _invoice_june(db_session)
    DeliverySchedulerService.schedule_for_date(db_session, JUNE_3)

    result = DeliverySchedulerService.auto_deliver_pending(db_session, JUNE_3)

    assert result.delivered == 1
    assert result.skipped == 1
    assert result.errors == []
    assert _deliveries_for(db_session, asha_id, JUNE_3)[0].status == models.DeliveryStatus.PENDING
    alternate = _deliveries_for(db_session, delivered_june["alternate"].id, JUNE_3)[0]
    assert alternate.status == models.DeliveryStatus.DELIVERED


def test_delivery_created_by_another_run_counts_as_existing(db_session, seed_route, monkeypatch):
    asha_id = seed_route["daily"].id
    db_session.add(models.Delivery(customer_id=asha_id, delivery_date=JUNE_1))
    db_session.commit()
    # The run's snapshot of existing deliveries predates the row above.
    monkeypatch.setattr(
        DeliverySchedulerService,
        "_customers_with_delivery",
        staticmethod(lambda db, target_date: set()),
    )

    result = DeliverySchedulerService.schedule_for_date(db_session, JUNE_1)

    assert result.scheduled == 1
    assert result.skipped_existing == 1
    assert result.errors == []
    assert len(_deliveries_for(db_session, asha_id, JUNE_1)) == 1
