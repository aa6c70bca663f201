"""Conversion between catalog JSON documents and product models.

The JSON shape uses camelCase keys (shortDescription, galleryImages,
createdAt, ...). Prices are read as Decimal so they keep their stored
precision through to the CSV export.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from loguru import logger

from catalog_export.models import (
    SKU,
    ImageUrl,
    InvalidProductError,
    Price,
    Product,
    ProductAttribute,
    ProductId,
    ProductVariant,
)


def _parse_price(value: Any, index: int | None) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidProductError(f"invalid price {value!r}", index)
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidProductError(f"invalid price {value!r}", index) from e


def _parse_datetime(value: Any) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    if not isinstance(value, datetime):
        # fromisoformat does not accept the "Z" suffix before Python 3.11
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # Naive timestamps are stored as UTC so they sort against aware ones
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _price_to_json(value: Price | None) -> str | None:
    if value is None:
        return None
    return str(value)


def attribute_from_dict(data: dict[str, Any]) -> ProductAttribute:
    return ProductAttribute(
        id=str(data.get("id", "")),
        name=data["name"],
        values=[str(v) for v in data.get("values") or []],
        visible=bool(data.get("visible", True)),
        variation=bool(data.get("variation", True)),
    )


def variant_from_dict(data: dict[str, Any], index: int | None = None) -> ProductVariant:
    stock = data.get("stock")
    return ProductVariant(
        id=str(data.get("id", "")),
        sku=SKU(data.get("sku", "")),
        attributes={str(k): str(v) for k, v in (data.get("attributes") or {}).items()},
        price=_parse_price(data.get("price"), index),
        stock=int(stock) if stock is not None else None,
        image=ImageUrl(data["image"]) if data.get("image") else None,
    )


def product_from_dict(data: Any, index: int | None = None) -> Product:
    """Build a Product from its JSON representation.

    Args:
        data: Decoded JSON object
        index: Position of the object in its source array, for error messages

    Returns:
        Product model

    Raises:
        InvalidProductError: If data is not an object or lacks required keys
    """
    if not isinstance(data, dict):
        raise InvalidProductError(
            f"expected JSON object, got {type(data).__name__}", index
        )

    missing = [key for key in ("id", "name", "sku", "type") if data.get(key) is None]
    if missing:
        raise InvalidProductError(f"missing keys: {', '.join(missing)}", index)

    try:
        return Product(
            id=ProductId(str(data["id"])),
            name=data["name"],
            sku=SKU(data["sku"]),
            type=data["type"],
            price=_parse_price(data.get("price"), index),
            short_description=data.get("shortDescription") or "",
            long_description=data.get("longDescription") or "",
            main_image=ImageUrl(data["mainImage"]) if data.get("mainImage") else None,
            gallery_images=[ImageUrl(url) for url in data.get("galleryImages") or []],
            attributes=[attribute_from_dict(a) for a in data.get("attributes") or []],
            variants=[variant_from_dict(v, index) for v in data.get("variants") or []],
            created_at=_parse_datetime(data.get("createdAt")),
        )
    except InvalidProductError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise InvalidProductError(f"malformed product: {e}", index) from e


def product_to_dict(product: Product) -> dict[str, Any]:
    """Inverse of product_from_dict; prices are written as strings."""
    return {
        "id": product.id,
        "name": product.name,
        "shortDescription": product.short_description,
        "longDescription": product.long_description,
        "type": product.type,
        "price": _price_to_json(product.price),
        "sku": product.sku,
        "mainImage": product.main_image,
        "galleryImages": list(product.gallery_images),
        "attributes": [
            {
                "id": a.id,
                "name": a.name,
                "values": list(a.values),
                "visible": a.visible,
                "variation": a.variation,
            }
            for a in product.attributes
        ],
        "variants": [
            {
                "id": v.id,
                "attributes": dict(v.attributes),
                "sku": v.sku,
                "price": _price_to_json(v.price),
                "stock": v.stock,
                "image": v.image,
            }
            for v in product.variants
        ],
        "createdAt": product.created_at.isoformat(),
    }


def load_products_json(path: str | Path) -> list[Product]:
    """Read a JSON array of products from a file.

    Args:
        path: Path to the JSON file

    Returns:
        Products in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidProductError: If the document is not an array or an item is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Product file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f, parse_float=Decimal)

    if not isinstance(data, list):
        raise InvalidProductError(f"{path} must contain a JSON array of products")

    products = [product_from_dict(item, index) for index, item in enumerate(data)]
    logger.debug(f"Loaded {len(products)} products from {path}")
    return products
