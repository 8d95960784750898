"""Outbound notifications for payments and invoicing runs."""

from __future__ import annotations

import abc
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import httpx

from .. import models

if TYPE_CHECKING:  # pragma: no cover - only used for typing
    from .invoices import InvoiceGenerationResult

LOGGER = logging.getLogger(__name__)

TRANSPORT_ENV = "NOTIFICATION_TRANSPORT"
TELEGRAM_TOKEN_ENV = "TELEGRAM_BOT_TOKEN"
TELEGRAM_CHAT_ENV = "TELEGRAM_CHAT_ID"

EVENT_PAYMENT_RECEIVED = "payment_received"
EVENT_LARGE_TRANSACTION = "large_transaction"
EVENT_INVOICES_GENERATED = "invoices_generated"


class ConfigurationError(RuntimeError):
    """Raised when a notification client cannot be configured."""


class NotificationError(RuntimeError):
    """Raised when the external provider cannot be reached."""


@dataclass
class NotificationResult:
    """Outcome returned by a notification provider."""

    success: bool
    status_code: Optional[int] = None
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class NotificationClient(abc.ABC):
    """Interface implemented by outbound notification providers."""

    channel: str

    @abc.abstractmethod
    def send_message(
        self,
        *,
        destination: Optional[str],
        subject: str,
        plain_text: str,
    ) -> NotificationResult:
        """Send a message to the destination and return the delivery result."""


class ConsoleNotificationClient(NotificationClient):
    """Fallback client that writes messages to the log."""

    channel = "console"

    def __init__(self) -> None:
        self.records: list[dict[str, str]] = []

    def send_message(
        self,
        *,
        destination: Optional[str],
        subject: str,
        plain_text: str,
    ) -> NotificationResult:
        self.records.append(
            {
                "destination": destination or "",
                "subject": subject,
                "plain_text": plain_text,
            }
        )
        LOGGER.info("[console] %s: %s", subject, plain_text.replace("\n", " "))
        return NotificationResult(success=True, status_code=200, provider_message_id="console")


class TelegramNotificationClient(NotificationClient):
    """Post staff alerts to a Telegram chat through the Bot API."""

    channel = "telegram"
    base_url = "https://api.telegram.org"

    def __init__(
        self,
        *,
        bot_token: str | None,
        chat_id: str | None,
        timeout: float = 10.0,
    ) -> None:
        if not bot_token:
            raise ConfigurationError(f"{TELEGRAM_TOKEN_ENV} is required for Telegram alerts.")
        if not chat_id:
            raise ConfigurationError(f"{TELEGRAM_CHAT_ENV} is required for Telegram alerts.")
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/bot{self.bot_token}/sendMessage"

    def send_message(
        self,
        *,
        destination: Optional[str],
        subject: str,
        plain_text: str,
    ) -> NotificationResult:
        payload = {
            "chat_id": destination or self.chat_id,
            "text": f"{subject}\n\n{plain_text}",
            "disable_web_page_preview": True,
        }
        try:
            response = httpx.post(self.endpoint, json=payload, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise NotificationError(f"Network error contacting Telegram: {exc}") from exc

        if response.status_code >= 400:
            return NotificationResult(
                success=False,
                status_code=response.status_code,
                error=response.text,
            )

        body = response.json()
        message_id = (body.get("result") or {}).get("message_id")
        return NotificationResult(
            success=bool(body.get("ok", True)),
            status_code=response.status_code,
            provider_message_id=str(message_id) if message_id is not None else None,
            error=body.get("description") if not body.get("ok", True) else None,
        )


def build_notification_client_from_env(*, fallback_to_console: bool = True) -> NotificationClient:
    """Instantiate a notification client from environment variables."""

    transport = os.getenv(TRANSPORT_ENV, "auto").strip().lower()

    if transport in {"auto", "telegram"}:
        token = os.getenv(TELEGRAM_TOKEN_ENV)
        chat_id = os.getenv(TELEGRAM_CHAT_ENV)
        if transport == "auto" and not token:
            return ConsoleNotificationClient()
        try:
            return TelegramNotificationClient(bot_token=token, chat_id=chat_id)
        except ConfigurationError as exc:
            if not fallback_to_console:
                raise
            LOGGER.warning("%s; falling back to console output.", exc)
            return ConsoleNotificationClient()

    return ConsoleNotificationClient()


def _format_amount(value: Decimal | int | str) -> str:
    return f"Rs. {Decimal(value):,.2f}"


class BillingNotifier:
    """Compose billing events and hand them to a notification client.

    Delivery problems are logged and reported in the returned results; they
    never propagate to the caller.
    """

    def __init__(
        self,
        client: NotificationClient,
        *,
        large_transaction_threshold: Decimal = Decimal("10000"),
        destination: Optional[str] = None,
    ) -> None:
        self.client = client
        self.large_transaction_threshold = large_transaction_threshold
        self.destination = destination

    @classmethod
    def from_env(cls, large_transaction_threshold: Decimal = Decimal("10000")) -> "BillingNotifier":
        return cls(
            build_notification_client_from_env(),
            large_transaction_threshold=large_transaction_threshold,
            destination=os.getenv(TELEGRAM_CHAT_ENV),
        )

    def _dispatch(self, event: str, subject: str, plain_text: str) -> NotificationResult:
        try:
            result = self.client.send_message(
                destination=self.destination, subject=subject, plain_text=plain_text
            )
        except NotificationError as exc:
            LOGGER.warning("Notification %s failed: %s", event, exc)
            return NotificationResult(success=False, error=str(exc))
        except Exception as exc:  # pragma: no cover - defensive logging
            LOGGER.exception("Unexpected error sending notification %s", event)
            return NotificationResult(success=False, error=str(exc))

        if not result.success:
            LOGGER.warning(
                "Notification %s rejected by %s",
                event,
                self.client.channel,
                extra={"status_code": result.status_code, "error": result.error},
            )
        return result

    def payment_received(
        self,
        customer: models.Customer,
        payment: models.Payment,
        invoice: Optional[models.Invoice] = None,
    ) -> list[NotificationResult]:
        """Announce a payment; large amounts raise a second alert."""

        mode = getattr(payment.mode, "value", payment.mode)
        lines = [
            f"Customer: {customer.name}",
            f"Amount: {_format_amount(payment.amount)} ({mode})",
            f"Date: {payment.payment_date.isoformat()}",
        ]
        if invoice is not None:
            lines.append(
                f"Invoice: {invoice.invoice_number} "
                f"({getattr(invoice.payment_status, 'value', invoice.payment_status)})"
            )
        results = [
            self._dispatch(EVENT_PAYMENT_RECEIVED, "Payment received", "\n".join(lines))
        ]

        if Decimal(payment.amount) >= self.large_transaction_threshold:
            results.append(
                self._dispatch(
                    EVENT_LARGE_TRANSACTION,
                    "Large transaction",
                    f"{customer.name} paid {_format_amount(payment.amount)} via {mode}.",
                )
            )
        return results

    def invoices_generated(self, result: "InvoiceGenerationResult") -> NotificationResult:
        text = (
            f"Period: {result.period_start.isoformat()} to {result.period_end.isoformat()}\n"
            f"Generated: {result.generated}, skipped: {result.skipped}, "
            f"errors: {len(result.errors)}\n"
            f"Billed: {_format_amount(result.total_amount)}"
        )
        return self._dispatch(EVENT_INVOICES_GENERATED, "Monthly invoices generated", text)
