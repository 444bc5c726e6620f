"""StockPilot entry point.

Commands:
  serve      Run the token proxy (keeps the client secret server-side).
  login      Open the Mercado Livre authorization page.
  callback   Exchange the authorization code from the redirect.
  refresh    Force an access-token refresh.
  products   List listings with restock signals.
  status     Show the stored session (tokens masked).
  logout     Forget the stored session.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from urllib.parse import parse_qs, urlparse

from rich.console import Console
from rich.table import Table

from stockpilot.config import get_settings
from stockpilot.integrations.inventory import Product, demo_products
from stockpilot.integrations.mercadolivre import MercadoLivreClient
from stockpilot.logging_setup import setup_logging

logger = logging.getLogger(__name__)

console = Console()


def _package_version() -> str:
    try:
        return get_version("stockpilot")
    except PackageNotFoundError:
        return "0.0.0"


def parse_code(value: str) -> str:
    """Accept a bare authorization code or the full redirect URL carrying ?code=."""
    value = value.strip()
    if "://" in value or value.startswith("?"):
        codes = parse_qs(urlparse(value).query).get("code")
        if codes:
            return codes[0]
    return value


def _mask(token: str | None) -> str:
    if not token:
        return "(not set)"
    return token[:6] + "…" if len(token) > 6 else "…"


def render_products(products: list[Product]) -> Table:
    table = Table(title="Inventory")
    table.add_column("ID")
    table.add_column("Title", overflow="fold")
    table.add_column("Price", justify="right")
    table.add_column("Stock", justify="right")
    table.add_column("Avg/day", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Cover (d)", justify="right")
    table.add_column("Restock")
    for p in products:
        table.add_row(
            p.id,
            p.title,
            f"{p.price:.2f}",
            str(p.current_stock),
            f"{p.avg_daily_sales:.2f}",
            str(p.min_stock),
            f"{p.days_of_cover:.1f}",
            "[red]yes[/red]" if p.needs_restock else "no",
        )
    return table


async def _run_client_command(args: argparse.Namespace) -> int:
    async with MercadoLivreClient.from_settings() as client:
        if args.command == "login":
            url = client.authenticate()
            if url is None:
                return 1
            console.print(f"Authorize in your browser, then run [bold]stockpilot callback <code>[/bold]\n{url}")
            return 0

        if args.command == "callback":
            return 0 if await client.handle_callback(parse_code(args.code)) else 1

        if args.command == "refresh":
            return 0 if await client.refresh_token_flow() else 1

        if args.command == "products":
            if not client.is_authenticated():
                console.print("Not connected. Run [bold]stockpilot login[/bold] first.")
                return 1
            products = await client.get_my_products()
            _print_products(products, as_json=args.json)
            return 0

        if args.command == "status":
            session = client.session
            console.print(f"Authenticated: {'yes' if client.is_authenticated() else 'no'}")
            console.print(f"Access token:  {_mask(session.access_token)}")
            console.print(f"Refresh token: {_mask(session.refresh_token)}")
            console.print(f"User ID:       {session.user_id or '(not set)'}")
            return 0

        if args.command == "logout":
            client.logout()
            console.print("Logged out.")
            return 0

    return 1


def _print_products(products: list[Product], as_json: bool = False) -> None:
    if as_json:
        print(json.dumps([p.to_dict() for p in products], indent=2))
    elif products:
        console.print(render_products(products))
    else:
        console.print("No products found.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stockpilot",
        description="StockPilot - Mercado Livre inventory tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stockpilot serve                   Start the token proxy on :3001
  stockpilot login                   Open the Mercado Livre consent page
  stockpilot callback "<redirect>"   Finish login with the redirect URL or code
  stockpilot products                List listings with restock signals
  stockpilot products --demo         Show the sample inventory (no network)
""",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: from settings)")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the token proxy")
    serve.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    serve.add_argument("--port", "-p", type=int, default=3001, help="Port (default: 3001)")
    serve.add_argument("--dev", action="store_true", help="Development mode with auto-reload")

    sub.add_parser("login", help="Open the authorization page")

    callback = sub.add_parser("callback", help="Exchange an authorization code")
    callback.add_argument("code", help="Authorization code or full redirect URL")

    sub.add_parser("refresh", help="Refresh the access token")

    products = sub.add_parser("products", help="List products with restock signals")
    products.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    products.add_argument("--demo", action="store_true", help="Use the built-in sample inventory")

    sub.add_parser("status", help="Show the stored session")
    sub.add_parser("logout", help="Clear the stored session")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(level=args.log_level or settings.log_level)

    if args.command == "serve":
        from stockpilot.api.serve import run_api_server

        run_api_server(host=args.host, port=args.port, dev=args.dev)
        return 0

    if args.command == "products" and args.demo:
        _print_products(demo_products(), as_json=args.json)
        return 0

    try:
        return asyncio.run(_run_client_command(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
