from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from backend.app import models
from backend.app.services import (
    InvoiceDocumentService,
    InvoiceService,
    RecordNotFoundError,
)


@pytest.fixture
def june_invoice(db_session, delivered_june, billing_settings):
    InvoiceService.generate_monthly_invoices(
        db_session, 2024, 6, settings=billing_settings, issued_on=date(2024, 7, 1)
    )
    return db_session.query(models.Invoice).one()


def test_document_lists_delivered_lines(db_session, june_invoice, billing_settings):
    document = InvoiceDocumentService.build_document(
        db_session, june_invoice.id, settings=billing_settings, today=date(2024, 7, 2)
    )

    assert document.invoice_number == "INV-202406-0001"
    assert document.dairy_name == "Gokul Dairy"
    assert document.customer_name == "Asha Patil"
    assert document.customer_address == "12 Lake Road"
    assert document.status == "pending"
    assert document.balance_due == Decimal("120.00")
    assert len(document.lines) == 1
    line = document.lines[0]
    assert line.delivery_date == date(2024, 6, 1)
    assert line.product_name == "Cow Milk"
    assert line.unit == "litre"
    assert line.total_amount == Decimal("120.00")


def test_document_status_turns_overdue_after_due_date(db_session, june_invoice, billing_settings):
    document = InvoiceDocumentService.build_document(
        db_session, june_invoice.id, settings=billing_settings, today=date(2024, 8, 1)
    )

    assert document.status == "overdue"


def test_render_pdf(db_session, june_invoice, billing_settings):
    document = InvoiceDocumentService.build_document(
        db_session, june_invoice.id, settings=billing_settings
    )

    content = InvoiceDocumentService.render_pdf(document)

    assert content.startswith(b"%PDF")
    assert len(content) > 500


def test_long_documents_span_pages(db_session, june_invoice, billing_settings):
    document = InvoiceDocumentService.build_document(
        db_session, june_invoice.id, settings=billing_settings
    )
    document.lines = document.lines * 120

    content = InvoiceDocumentService.render_pdf(document)

    single_page = InvoiceDocumentService.render_pdf(
        InvoiceDocumentService.build_document(
            db_session, june_invoice.id, settings=billing_settings
        )
    )
    assert content.count(b"/Type /Page") > single_page.count(b"/Type /Page")


def test_missing_invoice(db_session, billing_settings):
    with pytest.raises(RecordNotFoundError):
        InvoiceDocumentService.build_document(db_session, "missing", settings=billing_settings)
