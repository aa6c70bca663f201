"""WooCommerce CSV exporter.

Pure functions turning catalog products into the WooCommerce product
import format. Variable products become one parent row followed by one
variation row per variant; attributes fill the dynamic "Attribute N"
column families.
"""

import csv
import math
from collections.abc import Iterable, Iterator, Sequence
from datetime import date
from decimal import Decimal
from pathlib import Path

import pandas as pd
from loguru import logger

from catalog_export.models import Price, Product, ProductVariant, validate_product


# WooCommerce column names (exact order expected by the importer)
WOOCOMMERCE_COLUMNS = [
    "ID",
    "Type",
    "SKU",
    "Name",
    "Published",
    "Is featured?",
    "Visibility in catalog",
    "Short description",
    "Description",
    "Tax status",
    "Tax class",
    "In stock?",
    "Stock",
    "Backorders allowed?",
    "Sold individually?",
    "Weight (lbs)",
    "Length (in)",
    "Width (in)",
    "Height (in)",
    "Allow customer reviews?",
    "Purchase note",
    "Sale price",
    "Regular price",
    "Categories",
    "Tags",
    "Shipping class",
    "Images",
    "Download limit",
    "Download expiry days",
    "Parent",
    "Grouped products",
    "Upsells",
    "Cross-sells",
    "External URL",
    "Button text",
    "Position",
]

ATTRIBUTE_VALUE_SEPARATOR = " | "
IMAGE_SEPARATOR = ", "

# Fixed values for simple products and variable parents
_LISTED_PRODUCT_DEFAULTS = {
    "Published": 1,
    "Is featured?": 0,
    "Visibility in catalog": "visible",
    "Tax status": "taxable",
    "In stock?": 1,
    "Backorders allowed?": 0,
    "Sold individually?": 0,
    "Allow customer reviews?": 1,
    "Position": 0,
}

# Variations inherit visibility, descriptions and reviews from their parent
_VARIATION_DEFAULTS = {
    "Published": 1,
    "Is featured?": 0,
    "Tax status": "taxable",
    "In stock?": 1,
    "Backorders allowed?": 0,
    "Sold individually?": 0,
}


class ExportRow:
    """One CSV row keyed by a fixed column list.

    Every column starts as an empty string; values are then overridden.
    Writing a column outside the list raises KeyError, so all rows built
    from the same column list have the same shape.
    """

    __slots__ = ("_values",)

    def __init__(self, columns: Sequence[str]):
        self._values = dict.fromkeys(columns, "")

    def __setitem__(self, column: str, value: object) -> None:
        if column not in self._values:
            raise KeyError(f"Unknown export column: {column!r}")
        self._values[column] = "" if value is None else str(value)

    def __getitem__(self, column: str) -> str:
        return self._values[column]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def update(self, values: dict[str, object]) -> None:
        for column, value in values.items():
            self[column] = value

    @property
    def columns(self) -> list[str]:
        return list(self._values)

    def values(self) -> list[str]:
        return list(self._values.values())

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)


def attribute_columns(slot: int) -> list[str]:
    """Column names of the attribute family for a 1-based slot."""
    return [
        f"Attribute {slot} name",
        f"Attribute {slot} value(s)",
        f"Attribute {slot} visible",
        f"Attribute {slot} global",
    ]


def count_attribute_slots(products: Iterable[Product], min_slots: int = 1) -> int:
    """Number of attribute column families needed for a batch.

    Args:
        products: Products to be exported together
        min_slots: Lower bound, so the header keeps at least this many families

    Returns:
        Largest attribute count over variable products, at least min_slots
    """
    widest = max(
        (len(p.attributes) for p in products if p.type == "variable"), default=0
    )
    return max(widest, min_slots)


def build_column_schema(products: Iterable[Product], min_slots: int = 1) -> list[str]:
    """Build the full, ordered column list for a batch of products.

    Args:
        products: Products to be exported together
        min_slots: Minimum number of attribute column families

    Returns:
        Base WooCommerce columns followed by the attribute families
    """
    columns = list(WOOCOMMERCE_COLUMNS)
    for slot in range(1, count_attribute_slots(products, min_slots) + 1):
        columns.extend(attribute_columns(slot))
    return columns


def format_price(value: Price | None) -> str:
    """Render a price as a plain decimal string.

    No currency symbol and no thousands separator. Decimals keep their
    stored precision; whole floats drop the trailing ".0".

    Args:
        value: Price to format

    Returns:
        Formatted price, or empty string if value is None or not finite

    Examples:
        >>> format_price(Decimal("19.99"))
        '19.99'
        >>> format_price(9.0)
        '9'
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, Decimal):
        return format(value, "f") if value.is_finite() else ""
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        if value.is_integer():
            return str(int(value))
        # repr gives the shortest round-tripping digits; "f" avoids exponents
        return format(Decimal(repr(value)), "f")
    return str(value)


def join_product_images(product: Product) -> str:
    """Main image followed by the gallery, comma-separated, empties dropped."""
    images = [product.main_image, *product.gallery_images]
    return IMAGE_SEPARATOR.join(image for image in images if image)


def variation_name(product: Product, variant: ProductVariant) -> str:
    """Display name of a variation: product name plus its first attribute value.

    Examples:
        "Widget" with {"Color": "Red", "Size": "M"} -> "Widget - Red"
    """
    if not product.attributes:
        return product.name
    first_value = variant.attributes.get(product.attributes[0].name, "")
    return f"{product.name} - {first_value}"


def parent_reference(product: Product) -> str:
    """Key the importer uses to attach variations to their parent row."""
    return product.sku or product.id


def _variation_price(product: Product, variant: ProductVariant) -> str:
    for price in (variant.price, product.price):
        if price is not None:
            return format_price(price)
    return format_price(0)


def _simple_row(product: Product, columns: Sequence[str]) -> ExportRow:
    row = ExportRow(columns)
    row.update(_LISTED_PRODUCT_DEFAULTS)
    row.update(
        {
            "ID": product.id,
            "Type": "simple",
            "SKU": product.sku,
            "Name": product.name,
            "Short description": product.short_description,
            "Description": product.long_description,
            "Regular price": format_price(product.price),
            "Images": join_product_images(product),
        }
    )
    return row


def _parent_row(product: Product, columns: Sequence[str]) -> ExportRow:
    # Variable products have no price of their own; variations carry it
    row = ExportRow(columns)
    row.update(_LISTED_PRODUCT_DEFAULTS)
    row.update(
        {
            "ID": product.id,
            "Type": "variable",
            "SKU": product.sku,
            "Name": product.name,
            "Short description": product.short_description,
            "Description": product.long_description,
            "Images": join_product_images(product),
        }
    )

    for slot, attribute in enumerate(product.attributes, start=1):
        name_col, values_col, visible_col, global_col = attribute_columns(slot)
        row[name_col] = attribute.name
        row[values_col] = ATTRIBUTE_VALUE_SEPARATOR.join(attribute.values)
        row[visible_col] = 1
        row[global_col] = 1

    return row


def _variation_row(
    product: Product, variant: ProductVariant, position: int, columns: Sequence[str]
) -> ExportRow:
    row = ExportRow(columns)
    row.update(_VARIATION_DEFAULTS)
    row.update(
        {
            "Type": "variation",
            "SKU": variant.sku,
            "Name": variation_name(product, variant),
            "Stock": variant.stock,
            "Regular price": _variation_price(product, variant),
            "Images": variant.image or "",
            "Parent": parent_reference(product),
            "Position": position,
        }
    )

    for slot, attribute in enumerate(product.attributes, start=1):
        name_col, values_col, visible_col, global_col = attribute_columns(slot)
        row[name_col] = attribute.name
        row[values_col] = variant.attributes.get(attribute.name, "")
        row[visible_col] = 1
        row[global_col] = 1

    return row


def build_rows(product: Product, columns: Sequence[str]) -> list[ExportRow]:
    """Convert one product to its WooCommerce rows.

    Args:
        product: Product to convert
        columns: Column schema shared by the whole export

    Returns:
        One row for a simple product; for a variable product the parent row
        followed by one variation row per variant, in variant order

    Raises:
        KeyError: If the product needs attribute columns missing from columns
    """
    if product.type == "simple":
        return [_simple_row(product, columns)]

    rows = [_parent_row(product, columns)]
    rows.extend(
        _variation_row(product, variant, position, columns)
        for position, variant in enumerate(product.variants)
    )
    return rows


def serialize_rows(columns: Sequence[str], rows: Sequence[ExportRow]) -> str:
    """Serialize rows to CSV text with a header line.

    Fields containing a comma, a quote or a line break are quoted with
    internal quotes doubled; everything else is written bare.

    Args:
        columns: Column schema, in output order
        rows: Rows built against the same schema

    Returns:
        CSV text, one header line plus one line per row

    Raises:
        ValueError: If a row was built against a different column list
    """
    columns = list(columns)
    for index, row in enumerate(rows):
        if row.columns != columns:
            raise ValueError(f"Row {index} does not match the export columns")

    df = pd.DataFrame([row.values() for row in rows], columns=columns, dtype=object)
    # "\r\n" makes the csv writer quote fields holding either line-break character
    return df.to_csv(index=False, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")


def export_catalog(products: Sequence[Product], min_attribute_slots: int = 1) -> str:
    """Export a product batch to WooCommerce CSV text.

    Args:
        products: Products in output order
        min_attribute_slots: Minimum number of attribute column families

    Returns:
        CSV text; an empty batch gives the header line only

    Raises:
        InvalidProductError: If a product is malformed (names its index)
    """
    for index, product in enumerate(products):
        validate_product(product, index)

    columns = build_column_schema(products, min_attribute_slots)

    rows: list[ExportRow] = []
    for product in products:
        product_rows = build_rows(product, columns)
        logger.debug(f"Product {product.id} ({product.type}): {len(product_rows)} rows")
        rows.extend(product_rows)

    logger.info(f"Exported {len(products)} products as {len(rows)} CSV rows")
    return serialize_rows(columns, rows)


def suggested_filename(
    today: date | None = None, prefix: str = "woocommerce-products"
) -> str:
    """Dated download name, e.g. woocommerce-products-2024-05-01.csv."""
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.csv"


def write_catalog_csv(
    content: str,
    filename: str,
    output_dir: str = "output",
    encoding: str = "utf-8",
) -> Path:
    """Write exported CSV text to a file.

    Args:
        content: CSV text from export_catalog
        filename: Target file name
        output_dir: Directory to write into (created if missing)
        encoding: Text encoding of the file

    Returns:
        Path to created CSV file
    """
    output_file = Path(output_dir) / filename
    output_file.parent.mkdir(parents=True, exist_ok=True)

    # newline="" keeps the "\r\n" terminators and quoted line breaks verbatim
    with open(output_file, "w", encoding=encoding, newline="") as f:
        f.write(content)

    logger.info(f"Wrote catalog CSV to {output_file}")
    return output_file
