"""Printable invoice documents."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session, selectinload

from .. import models
from .billing_settings import BillingSettings
from .errors import RecordNotFoundError
from .money import normalize_amount

PAGE_TOP = 800
PAGE_BOTTOM = 80
LINE_HEIGHT = 14


@dataclass(frozen=True)
class DocumentLine:
    delivery_date: date
    product_name: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal


@dataclass
class InvoiceDocument:
    """Everything printed on an invoice."""

    invoice_number: str
    period_start: date
    period_end: date
    due_date: date
    status: str
    customer_name: str
    customer_phone: Optional[str]
    customer_address: Optional[str]
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    paid_amount: Decimal
    notes: Optional[str]
    dairy_name: str
    dairy_address: str
    dairy_phone: str
    lines: list[DocumentLine] = field(default_factory=list)

    @property
    def balance_due(self) -> Decimal:
        return max(self.final_amount - self.paid_amount, Decimal("0.00"))


class InvoiceDocumentService:
    """Build invoice documents from stored records and render them to PDF."""

    @staticmethod
    def build_document(
        db: Session,
        invoice_id: str,
        *,
        settings: Optional[BillingSettings] = None,
        today: Optional[date] = None,
    ) -> InvoiceDocument:
        settings = settings or BillingSettings.from_env()
        invoice = (
            db.query(models.Invoice)
            .options(selectinload(models.Invoice.customer))
            .filter(models.Invoice.id == invoice_id)
            .first()
        )
        if invoice is None:
            raise RecordNotFoundError("Invoice not found")

        rows = (
            db.query(models.Delivery.delivery_date, models.DeliveryItem, models.Product)
            .join(models.DeliveryItem, models.DeliveryItem.delivery_id == models.Delivery.id)
            .join(models.Product, models.Product.id == models.DeliveryItem.product_id)
            .filter(models.Delivery.customer_id == invoice.customer_id)
            .filter(models.Delivery.status == models.DeliveryStatus.DELIVERED)
            .filter(models.Delivery.delivery_date >= invoice.period_start)
            .filter(models.Delivery.delivery_date <= invoice.period_end)
            .order_by(models.Delivery.delivery_date.asc(), models.Product.name.asc())
            .all()
        )
        lines = [
            DocumentLine(
                delivery_date=delivery_date,
                product_name=product.name,
                unit=product.unit,
                quantity=Decimal(item.quantity),
                unit_price=normalize_amount(item.unit_price),
                total_amount=normalize_amount(item.total_amount),
            )
            for delivery_date, item, product in rows
        ]

        customer = invoice.customer
        return InvoiceDocument(
            invoice_number=invoice.invoice_number,
            period_start=invoice.period_start,
            period_end=invoice.period_end,
            due_date=invoice.due_date,
            status=invoice.effective_status(today).value,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_address=customer.address,
            total_amount=normalize_amount(invoice.total_amount),
            tax_amount=normalize_amount(invoice.tax_amount),
            discount_amount=normalize_amount(invoice.discount_amount),
            final_amount=normalize_amount(invoice.final_amount),
            paid_amount=normalize_amount(invoice.paid_amount),
            notes=invoice.notes,
            dairy_name=settings.dairy_name,
            dairy_address=settings.dairy_address,
            dairy_phone=settings.dairy_phone,
            lines=lines,
        )

    @staticmethod
    def render_pdf(document: InvoiceDocument) -> bytes:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4)
        c.setTitle(f"Invoice {document.invoice_number}")
        y = PAGE_TOP

        c.setFont("Helvetica-Bold", 16)
        c.drawString(50, y, document.dairy_name)
        c.setFont("Helvetica", 9)
        for detail in (document.dairy_address, document.dairy_phone):
            if detail:
                y -= 12
                c.drawString(50, y, detail)

        y -= 28
        c.setFont("Helvetica-Bold", 12)
        c.drawString(50, y, f"Invoice {document.invoice_number}")
        c.setFont("Helvetica", 10)
        c.drawRightString(545, y, f"Status: {document.status.upper()}")
        y -= LINE_HEIGHT
        c.drawString(
            50,
            y,
            f"Period: {document.period_start.isoformat()} to {document.period_end.isoformat()}",
        )
        c.drawRightString(545, y, f"Due: {document.due_date.isoformat()}")

        y -= 24
        c.setFont("Helvetica-Bold", 10)
        c.drawString(50, y, "Bill to")
        c.setFont("Helvetica", 10)
        for detail in (document.customer_name, document.customer_address, document.customer_phone):
            if detail:
                y -= LINE_HEIGHT
                c.drawString(50, y, detail)

        y -= 24
        c.setFont("Helvetica-Bold", 10)
        c.drawString(50, y, "Date")
        c.drawString(130, y, "Product")
        c.drawRightString(380, y, "Qty")
        c.drawRightString(460, y, "Rate")
        c.drawRightString(545, y, "Amount")
        c.setFont("Helvetica", 10)

        for line in document.lines:
            y -= LINE_HEIGHT
            if y < PAGE_BOTTOM:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = PAGE_TOP
            c.drawString(50, y, line.delivery_date.strftime("%d/%m/%Y"))
            c.drawString(130, y, line.product_name[:32])
            c.drawRightString(380, y, f"{line.quantity.normalize():f} {line.unit}")
            c.drawRightString(460, y, f"{line.unit_price:.2f}")
            c.drawRightString(545, y, f"{line.total_amount:.2f}")

        y -= 24
        if y < PAGE_BOTTOM + 6 * LINE_HEIGHT:
            c.showPage()
            y = PAGE_TOP
        totals = (
            ("Subtotal", document.total_amount),
            ("Tax", document.tax_amount),
            ("Discount", document.discount_amount),
            ("Total", document.final_amount),
            ("Paid", document.paid_amount),
            ("Balance due", document.balance_due),
        )
        for label, amount in totals:
            c.setFont("Helvetica-Bold" if label in {"Total", "Balance due"} else "Helvetica", 10)
            c.drawRightString(460, y, label)
            c.drawRightString(545, y, f"Rs. {amount:,.2f}")
            y -= LINE_HEIGHT

        if document.notes:
            y -= 10
            c.setFont("Helvetica-Oblique", 9)
            c.drawString(50, y, document.notes[:110])

        c.showPage()
        c.save()
        return buffer.getvalue()
