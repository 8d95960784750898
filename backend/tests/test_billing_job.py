from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal

import pytest

from backend.app import models
from backend.app.scripts import billing_job
from backend.app.services import BillingValidationError


@pytest.fixture
def job_session(db_session, monkeypatch):
    @contextmanager
    def _scope():
        yield db_session

    monkeypatch.setattr(billing_job, "session_scope", _scope)
    return db_session


def test_schedule_command_creates_deliveries(job_session, seed_route):
    exit_code = billing_job.main(
        ["schedule", "--date", "2024-06-01", "--days", "2", "--mark-delivered"]
    )

    assert exit_code == 0
    deliveries = job_session.query(models.Delivery).all()
    assert len(deliveries) == 3
    assert {delivery.status for delivery in deliveries} == {models.DeliveryStatus.DELIVERED}


def test_schedule_command_rejects_long_ranges(job_session, seed_route):
    assert billing_job.main(["schedule", "--date", "2024-06-01", "--days", "45"]) == 2


def test_invalid_date_is_a_usage_error(job_session):
    with pytest.raises(SystemExit) as excinfo:
        billing_job.main(["schedule", "--date", "01/06/2024"])

    assert excinfo.value.code == 2


def test_auto_deliver_command(job_session, seed_route):
    billing_job.main(["schedule", "--date", "2024-06-03"])

    assert billing_job.main(["auto-deliver", "--date", "2024-06-03"]) == 0
    statuses = {delivery.status for delivery in job_session.query(models.Delivery).all()}
    assert statuses == {models.DeliveryStatus.DELIVERED}


def test_invoice_command_and_ledger_check(job_session, delivered_june):
    assert billing_job.main(["invoice", "--year", "2024", "--month", "6", "--notify"]) == 0

    invoice = job_session.query(models.Invoice).one()
    assert Decimal(invoice.final_amount) == Decimal("120.00")
    assert billing_job.main(["verify-ledger"]) == 0

    delivered_june["daily"].credit_balance = Decimal("5.00")
    job_session.commit()

    assert billing_job.main(["verify-ledger"]) == 1


def test_invoice_command_with_bad_month(job_session):
    assert billing_job.main(["invoice", "--year", "2024", "--month", "13"]) == 2


def test_billing_errors_are_reported_not_raised(job_session, monkeypatch):
    def refuse(*args, **kwargs):
        raise BillingValidationError("nothing to do")

    monkeypatch.setattr(billing_job.DeliverySchedulerService, "auto_deliver_pending", refuse)

    assert billing_job.main(["auto-deliver"]) == 2
