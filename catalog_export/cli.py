"""Command-line interface for the product catalog.

Usage:
    python -m catalog_export.cli export --catalog catalog.json
    python -m catalog_export.cli export --catalog catalog.json --stdout
    python -m catalog_export.cli import-json products.json
    python -m catalog_export.cli list
    python -m catalog_export.cli delete 3f2c...
"""

import argparse
import os
import sys
from pathlib import Path

from loguru import logger

from catalog_export.exporters.woocommerce_csv import (
    export_catalog,
    suggested_filename,
    write_catalog_csv,
)
from catalog_export.models import ExportConfig, InvalidProductError
from catalog_export.serialization import load_products_json
from catalog_export.store import JsonCatalogStore

DEFAULT_CATALOG_PATH = "catalog.json"


def setup_logging(verbose: bool = False, log_dir: str = "logs") -> None:
    """Send catalog logs to stderr and to a daily file under log_dir.

    The console shows INFO and above (DEBUG when verbose); the file always
    keeps DEBUG, one file per day for a month.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format="<level>{level: <8}</level> | <cyan>{name}</cyan> - {message}",
        level="DEBUG" if verbose else "INFO",
        colorize=True,
    )
    logger.add(
        Path(log_dir) / "catalog_export_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
        level="DEBUG",
        rotation="1 day",
        retention="30 days",
        encoding="utf-8",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage a product catalog and export it for WooCommerce",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export the catalog to output/woocommerce-products-<date>.csv
  python -m catalog_export.cli export --catalog catalog.json

  # Print the CSV instead of writing a file
  python -m catalog_export.cli export --stdout

  # Add products from a JSON array file
  python -m catalog_export.cli import-json new_products.json
        """,
    )

    parser.add_argument(
        "--catalog",
        default=os.getenv("CATALOG_PATH", DEFAULT_CATALOG_PATH),
        help="Catalog JSON file (default: $CATALOG_PATH or catalog.json)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose debug logging",
    )
    parser.add_argument(
        "--log-dir",
        default="logs",
        help="Directory for daily log files (default: logs)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    export_cmd = commands.add_parser("export", help="Export the catalog as CSV")
    export_cmd.add_argument(
        "--output",
        "-o",
        default=ExportConfig.output_dir,
        help="Output directory (default: output)",
    )
    export_cmd.add_argument(
        "--filename",
        help="Output file name (default: woocommerce-products-<date>.csv)",
    )
    export_cmd.add_argument(
        "--attribute-slots",
        type=int,
        default=ExportConfig.min_attribute_slots,
        help="Minimum number of 'Attribute N' column groups (default: 1)",
    )
    export_cmd.add_argument(
        "--stdout",
        action="store_true",
        help="Write CSV to stdout instead of a file",
    )

    import_cmd = commands.add_parser(
        "import-json", help="Add products from a JSON array file"
    )
    import_cmd.add_argument("path", help="JSON file with a list of products")

    commands.add_parser("list", help="List catalog products")

    delete_cmd = commands.add_parser("delete", help="Delete a product")
    delete_cmd.add_argument("product_id", help="ID of the product to delete")

    return parser


def run_export(store: JsonCatalogStore, args: argparse.Namespace) -> int:
    config = ExportConfig(
        output_dir=args.output, min_attribute_slots=args.attribute_slots
    )
    content = export_catalog(store.list(), config.min_attribute_slots)

    if args.stdout:
        sys.stdout.write(content)
        return 0

    filename = args.filename or suggested_filename(prefix=config.filename_prefix)
    csv_path = write_catalog_csv(
        content, filename, config.output_dir, encoding=config.encoding
    )
    logger.success(f"CSV: {csv_path}")
    return 0


def run_import(store: JsonCatalogStore, args: argparse.Namespace) -> int:
    products = store.create_many(load_products_json(args.path))
    logger.success(f"Imported {len(products)} products into {store.path}")
    return 0


def run_list(store: JsonCatalogStore, args: argparse.Namespace) -> int:
    for product in store.list():
        print(f"{product.id}\t{product.type}\t{product.sku}\t{product.name}")
    return 0


def run_delete(store: JsonCatalogStore, args: argparse.Namespace) -> int:
    store.delete(args.product_id)
    return 0


COMMANDS = {
    "export": run_export,
    "import-json": run_import,
    "list": run_list,
    "delete": run_delete,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, args.log_dir)

    store = JsonCatalogStore(args.catalog)

    try:
        return COMMANDS[args.command](store, args)
    except (FileNotFoundError, KeyError, InvalidProductError) as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Command {args.command!r} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
