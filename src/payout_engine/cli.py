"""Payout engine command line interface.

Usage:
    payout-engine serve [--host H] [--port P] [--reload]
    payout-engine init-db
    payout-engine new-key
    payout-engine quote --amount 1000
    payout-engine health
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from decimal import Decimal, InvalidOperation

from payout_engine.config import Settings, configure_logging, get_settings
from payout_engine.database import Database
from payout_engine.services.payment_service import estimate
from payout_engine.services.rates import StaticRateProvider
from payout_engine.services.validation import generate_idempotency_key


def parse_amount(s: str) -> Decimal:
    """Parse a positive decimal amount."""
    try:
        amount = Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {s}") from None
    if not amount.is_finite() or amount <= 0:
        raise argparse.ArgumentTypeError("amount must be greater than 0")
    return amount


class PayoutCli:
    """Payout engine command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self.parser = self._build_parser()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="payout-engine",
            description="Vendor payout engine",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # serve command
        serve = subparsers.add_parser("serve", help="Run the HTTP API")
        serve.add_argument("--host", type=str, help="Bind address (default: HOST)")
        serve.add_argument("--port", type=int, help="Bind port (default: PORT)")
        serve.add_argument("--reload", action="store_true", help="Reload on code changes")

        # init-db command
        subparsers.add_parser("init-db", help="Create database tables")

        # new-key command
        subparsers.add_parser("new-key", help="Print a fresh idempotency key")

        # quote command
        quote = subparsers.add_parser(
            "quote",
            help="Estimate the destination amount for a source amount",
        )
        quote.add_argument(
            "--amount",
            type=parse_amount,
            required=True,
            help="Source amount",
        )

        # health command
        subparsers.add_parser("health", help="Check database connectivity")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "new-key": self._cmd_new_key,
            "quote": self._cmd_quote,
            "health": self._cmd_health,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        import uvicorn

        settings = self.settings
        configure_logging(settings.log_level)
        uvicorn.run(
            "payout_engine.api.app:create_app",
            factory=True,
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=args.reload or settings.debug,
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        configure_logging(self.settings.log_level)

        async def _create() -> None:
            database = Database(self.settings.database_url)
            try:
                await database.create_all()
            finally:
                await database.dispose()

        try:
            asyncio.run(_create())
        except Exception as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1
        print("Database tables created.")
        return 0

    def _cmd_new_key(self, args: argparse.Namespace) -> int:
        print(generate_idempotency_key())
        return 0

    def _cmd_quote(self, args: argparse.Namespace) -> int:
        settings = self.settings
        if args.amount > settings.max_payment_amount:
            print(
                f"ERROR: amount exceeds maximum of {settings.max_payment_amount}",
                file=sys.stderr,
            )
            return 1
        quote = estimate(StaticRateProvider(), settings, args.amount)
        print(f"Source:      {quote.source_amount} {quote.source_currency}")
        print(f"Rate:        {quote.exchange_rate.normalize()}")
        print(f"Destination: {quote.destination_amount} {quote.destination_currency} (before fees)")
        return 0

    def _cmd_health(self, args: argparse.Namespace) -> int:
        print("Payout Engine Health Check")
        print("=" * 40)

        async def _ping() -> None:
            database = Database(self.settings.database_url)
            try:
                await database.ping()
            finally:
                await database.dispose()

        try:
            asyncio.run(_ping())
        except Exception as e:
            print(f"  Database: UNHEALTHY ({e})")
            return 1
        print("  Database: OK")
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PayoutCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
