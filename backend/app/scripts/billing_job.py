"""Command line entry-point for the daily and monthly billing runs."""

from __future__ import annotations

import argparse
import logging
from datetime import date
from typing import Optional

from ..database import session_scope
from ..services import (
    BillingError,
    BillingNotifier,
    BillingSettings,
    DeliverySchedulerService,
    InvoiceService,
    LedgerIntegrityService,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date {raw!r}, expected YYYY-MM-DD") from exc


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run delivery scheduling, invoicing and ledger checks."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print additional debugging information.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    schedule = subparsers.add_parser("schedule", help="Create deliveries from subscriptions.")
    schedule.add_argument(
        "--date",
        type=_parse_date,
        default=None,
        help="First delivery date (default: today).",
    )
    schedule.add_argument(
        "--days",
        type=int,
        default=1,
        help="Number of consecutive days to schedule (1-31, default: 1).",
    )
    schedule.add_argument(
        "--mark-delivered",
        action="store_true",
        help="Create the deliveries as already delivered.",
    )

    auto_deliver = subparsers.add_parser(
        "auto-deliver", help="Mark the date's pending deliveries as delivered."
    )
    auto_deliver.add_argument("--date", type=_parse_date, default=None)

    invoice = subparsers.add_parser("invoice", help="Generate monthly invoices.")
    invoice.add_argument("--year", type=int, required=True)
    invoice.add_argument("--month", type=int, required=True)
    invoice.add_argument(
        "--notify",
        action="store_true",
        help="Send a summary through the configured notification transport.",
    )

    subparsers.add_parser(
        "verify-ledger", help="Report balance drift and unposted invoices or payments."
    )
    return parser.parse_args(argv)


def _run_schedule(session, args: argparse.Namespace) -> int:
    start = args.date or date.today()
    results = DeliverySchedulerService.schedule_for_range(
        session, start, args.days, mark_delivered=args.mark_delivered
    )
    errors = 0
    for result in results:
        LOGGER.info("Schedule summary: %s", result.to_dict())
        errors += len(result.errors)
    return 1 if errors else 0


def _run_auto_deliver(session, args: argparse.Namespace) -> int:
    result = DeliverySchedulerService.auto_deliver_pending(session, args.date or date.today())
    LOGGER.info("Auto-deliver summary: %s", result.to_dict())
    return 1 if result.errors else 0


def _run_invoice(session, args: argparse.Namespace) -> int:
    settings = BillingSettings.from_env()
    result = InvoiceService.generate_monthly_invoices(
        session, args.year, args.month, settings=settings
    )
    LOGGER.info("Invoice summary: %s", result.to_dict())
    if args.notify and result.generated:
        BillingNotifier.from_env(settings.large_transaction_threshold).invoices_generated(result)
    return 1 if result.errors else 0


def _run_verify_ledger(session, _args: argparse.Namespace) -> int:
    report = LedgerIntegrityService.integrity_report(session)
    LOGGER.info(
        "Ledger check: %s customers, %s balance mismatches, %s invoices without debit, "
        "%s payments without credit",
        report.customers_checked,
        len(report.balance_mismatches),
        len(report.invoices_without_debit),
        len(report.payments_without_credit),
    )
    for mismatch in report.balance_mismatches:
        LOGGER.warning(
            "Balance mismatch for %s: cached %s, ledger %s",
            mismatch.customer_id,
            mismatch.cached_balance,
            mismatch.ledger_balance,
        )
    return 0 if report.is_clean else 1


COMMANDS = {
    "schedule": _run_schedule,
    "auto-deliver": _run_auto_deliver,
    "invoice": _run_invoice,
    "verify-ledger": _run_verify_ledger,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    try:
        with session_scope() as session:
            return COMMANDS[args.command](session, args)
    except BillingError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
