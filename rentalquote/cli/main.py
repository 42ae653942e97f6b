#!/usr/bin/env python3

import argparse
from collections.abc import Sequence


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Rental marketplace pricing CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  quote <file|->             Price a quote file (listing, orderData, commission, coupons)
  quote <file> --beancount   Print the breakdown as a Beancount transaction
  tax-rate <region>          Show the sales tax rate for a region
  serve [--host] [--port]    Start the pricing API server
""",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    quote_parser = subparsers.add_parser("quote", help="Price a quote file")
    quote_parser.add_argument("input", help="JSON quote file, or - for stdin")
    quote_parser.add_argument("--beancount", action="store_true", help="Print a Beancount transaction instead of JSON")
    quote_parser.add_argument("--tax-table", default=None, help="Sales tax TOML file (default: configured table)")

    tax_parser = subparsers.add_parser("tax-rate", help="Show the sales tax rate for a region")
    tax_parser.add_argument("region", help="Region name or code, e.g. Ontario or ON")
    tax_parser.add_argument("--tax-table", default=None, help="Sales tax TOML file (default: configured table)")

    serve_parser = subparsers.add_parser("serve", help="Start the pricing API server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to (default: 8000)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "quote":
        from rentalquote.cli.quote import cmd_quote

        return cmd_quote(args)
    elif args.command == "tax-rate":
        from rentalquote.cli.quote import cmd_tax_rate

        return cmd_tax_rate(args)
    elif args.command == "serve":
        from rentalquote.cli.quote import cmd_serve

        return cmd_serve(args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
