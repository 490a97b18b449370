#!/usr/bin/env python3
import argparse
import json
import os
import sys
from pathlib import Path

from pricing import QuoteError, quote_shipment
from rate_data import RateDataProvider

DEFAULT_DATA_DIR = Path(os.environ.get('RATE_DATA_DIR') or Path(__file__).resolve().parents[1] / "data")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Quote a shipment from the pincode and urgent rate files.")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR)
    subparsers = parser.add_subparsers(dest="command", required=True)

    quote_parser = subparsers.add_parser("quote", help="Price one shipment.")
    quote_parser.add_argument("pincode")
    quote_parser.add_argument("weight_kg", type=float)
    quote_parser.add_argument("--service", choices=("normal", "urgent"), default="normal")
    quote_parser.add_argument("--transport", choices=("surface", "air"), default=None)

    subparsers.add_parser("describe", help="Show which files and headers were picked up.")

    args = parser.parse_args(argv)
    provider = RateDataProvider(args.data_dir)

    if args.command == "describe":
        print(json.dumps(provider.describe(), indent=2))
        return 0 if provider.available else 1

    try:
        quote = quote_shipment(provider, args.pincode, args.weight_kg, args.service, args.transport)
    except QuoteError as e:
        print(f"Error: {e.msg}", file=sys.stderr)
        return 1
    print(json.dumps(quote.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
