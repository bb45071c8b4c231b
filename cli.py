#!/usr/bin/env python3
"""
Command-line interface for the storefront promotion service.

Usage:
    uv run python cli.py [command] [options]

Commands:
    promotions  List, activate or deactivate promotions
    price       Price a cart JSON file under the active promotion
    demo        Run the activation demo
    test        Run the test suite
    serve       Start the API server

Examples:
    uv run python cli.py promotions list
    uv run python cli.py promotions activate promo-002
    uv run python cli.py price data/cart.json --checkout
    uv run python cli.py serve --reload
"""

import argparse
import json
import subprocess
import sys
from pathlib import Path
from typing import Optional

from shared.config import Settings, configure_logging
from shared.errors import ActivationError, PricingValidationError, PromotionNotFoundError, StoreError


def _store(settings: Settings):
    from shared.promotion_store import PromotionStore
    return PromotionStore(data_dir=settings.data_dir, persist=True)


def run_promotions(settings: Settings, action: str, promotion_id: Optional[str]) -> int:
    """List or switch promotions; switching writes through to the JSON file."""
    from admin.activation import ActivationController
    from realtime.change_notifier import ChangeNotifier

    store = _store(settings)
    controller = ActivationController(store, ChangeNotifier())

    try:
        if action == "list":
            for promotion in store.list_all():
                marker = "ACTIVE" if promotion.is_active else "off"
                print(f"{promotion.id:<12} {marker:<6} {promotion.name}")
        elif action == "activate":
            controller.set_active(promotion_id)
            print(f"Activated {promotion_id}")
        elif action == "deactivate":
            controller.deactivate(promotion_id)
            print(f"Deactivated {promotion_id}")
        elif action == "deactivate-all":
            controller.deactivate_all()
            print("Deactivated all promotions")
    except PromotionNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 1
    except (ActivationError, StoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def run_price(settings: Settings, cart_file: Path, checkout: bool) -> int:
    """Price a cart file (a JSON list of cart lines) and print the result."""
    from storefront.pricing import compute_pricing, summarize_checkout

    try:
        with open(cart_file, "r") as f:
            lines = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Cannot read cart {cart_file}: {e}", file=sys.stderr)
        return 1

    store = _store(settings)
    try:
        promotion = store.fetch_active()
    except StoreError as e:
        print(f"Warning: {e}; pricing without promotion", file=sys.stderr)
        promotion = None

    try:
        if checkout:
            result = summarize_checkout(lines, promotion)
        else:
            result = compute_pricing(lines, promotion)
    except PricingValidationError as e:
        print(f"Invalid cart: {e}", file=sys.stderr)
        return 1

    print(result.model_dump_json(indent=2))
    return 0


def run_demo(settings: Settings) -> int:
    """Run the activation demo."""
    import asyncio
    from storefront.demo import run_activation_demo

    asyncio.run(run_activation_demo(settings))
    return 0


def run_tests(args: list[str]) -> int:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    return subprocess.run(cmd).returncode


def run_server(host: str, port: int, reload: bool) -> int:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    return subprocess.run(cmd).returncode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Storefront Promotion Service CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s promotions list
  %(prog)s promotions activate promo-002
  %(prog)s promotions deactivate-all
  %(prog)s price data/cart.json --checkout
  %(prog)s demo
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Promotions command
    promotions_parser = subparsers.add_parser("promotions", help="List or switch promotions")
    promotions_parser.add_argument(
        "action",
        choices=["list", "activate", "deactivate", "deactivate-all"],
        help="What to do",
    )
    promotions_parser.add_argument(
        "promotion_id",
        nargs="?",
        help="Promotion to activate or deactivate",
    )

    # Price command
    price_parser = subparsers.add_parser("price", help="Price a cart file")
    price_parser.add_argument("cart_file", type=Path, help="JSON list of cart lines")
    price_parser.add_argument("--checkout", action="store_true", help="Include sale savings")

    # Demo command
    subparsers.add_parser("demo", help="Run the activation demo")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(settings)

    if args.command == "promotions":
        if args.action in ("activate", "deactivate") and not args.promotion_id:
            parser.error(f"promotions {args.action} requires a promotion id")
        return run_promotions(settings, args.action, args.promotion_id)
    elif args.command == "price":
        return run_price(settings, args.cart_file, args.checkout)
    elif args.command == "demo":
        return run_demo(settings)
    elif args.command == "test":
        return run_tests(args.pytest_args)
    elif args.command == "serve":
        return run_server(args.host, args.port, args.reload)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
