#!/usr/bin/env python3
"""
Script para recolectar pedidos de Square en una ventana de tiempo.

Uso:
    # Pedidos actualizados en las últimas 24 horas
    python scripts/collect_orders.py

    # Ventana explícita (ISO 8601, naive se interpreta como UTC)
    python scripts/collect_orders.py --start 2024-05-01T00:00:00 --end 2024-05-02T00:00:00

    # Últimas 6 horas, conservando line items sin match de catálogo, salida JSON
    python scripts/collect_orders.py --hours 6 --keep-unmatched --json
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from order_sync.core.config import get_settings, validate_required_settings
from order_sync.core.logging_config import setup_logging
from order_sync.db.square_clients import SquareClient
from order_sync.domain.models import OrderCollectionResult, TimeWindow
from order_sync.services.orders.factories import create_order_collection_pipeline
from order_sync.utils.cancellation import CancellationToken
from order_sync.utils.error_handler import AppException, CancelledOperationException
from order_sync.version import version_string

logger = logging.getLogger(__name__)
settings = get_settings()
console = Console()


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 argument."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid ISO 8601 datetime: {value}") from e


def build_window(args: argparse.Namespace) -> TimeWindow:
    end = args.end or datetime.now(UTC)
    start = args.start or end - timedelta(hours=args.hours)
    return TimeWindow(start_utc=start, end_utc=end)


def print_report(result: OrderCollectionResult, window: TimeWindow):
    """Print collection report."""
    console.print(
        Panel.fit(
            f"[bold]Square order collection[/bold]\n"
            f"Mark: {result.mark}\n"
            f"Window: {window.start_utc.isoformat()} -> {window.end_utc.isoformat()}\n"
            f"Batches: {result.batches}   Pages: {result.pages_fetched}   Orders: {result.total_orders}",
            border_style="cyan",
        )
    )

    if result.orders:
        table = Table(title="Orders")
        table.add_column("Order", style="cyan")
        table.add_column("Status")
        table.add_column("Updated (UTC)")
        table.add_column("Total", justify="right")
        table.add_column("Line items", justify="right")
        table.add_column("SKUs")

        for order in result.orders:
            total = f"{order.total.amount} {order.total.currency}" if order.total else "-"
            table.add_row(
                order.order_id,
                order.status,
                order.updated_at_utc.isoformat(),
                total,
                str(len(order.line_items)),
                ", ".join(order.skus),
            )
        console.print(table)

    if result.report.has_unmatched:
        console.print(f"\n[yellow]⚠️  Line items without catalog match: {len(result.report.unmatched)}[/yellow]")
        for item in result.report.unmatched:
            console.print(f"  order {item.order_id}: {item.catalog_object_id} x {item.quantity} ({item.name})")


async def main():
    """Main collection function."""
    parser = argparse.ArgumentParser(
        description=f"Collect Square orders ({version_string()})",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--start", type=parse_datetime, default=None, help="Window start (ISO 8601)")
    parser.add_argument("--end", type=parse_datetime, default=None, help="Window end (ISO 8601, default: now)")
    parser.add_argument(
        "--hours",
        type=float,
        default=24.0,
        help="Window length in hours when --start is not given (default: 24)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help=f"Orders per page (default: {settings.ORDERS_PAGE_SIZE})",
    )
    parser.add_argument(
        "--keep-unmatched",
        action="store_true",
        help="Keep line items without catalog match (empty SKU)",
    )
    parser.add_argument("--json", action="store_true", help="Print one JSON object per order")

    args = parser.parse_args()

    setup_logging()

    try:
        validate_required_settings()
    except ValueError as e:
        logger.error(f"❌ {e}")
        return 2

    window = build_window(args)
    cancellation = CancellationToken()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancellation.cancel, "interrupted by user")
    except NotImplementedError:
        # Windows
        pass

    overrides = {}
    if args.page_size is not None:
        overrides["page_size"] = args.page_size
    if args.keep_unmatched:
        overrides["drop_unmatched_line_items"] = False

    try:
        async with SquareClient() as client:
            pipeline = create_order_collection_pipeline(client, **overrides)
            result = await pipeline.collect_with_report(window, cancellation)

        if args.json:
            for order in result.orders:
                print(json.dumps(order.to_dict()))
        else:
            print_report(result, window)

        logger.info("✅ Collection completed successfully")
        return 0

    except CancelledOperationException:
        logger.info("⚠️  Collection cancelled")
        return 130

    except AppException as e:
        logger.error(f"❌ Collection failed: {e}")
        return 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
