"""JSON-file catalog store.

Keeps the whole catalog in one JSON array file and rewrites it atomically
(temp file + rename) on every change. Products are validated before they
are stored, so the exporter can rely on the catalog invariants.
"""

import json
import os
import tempfile
import uuid
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

from catalog_export.models import (
    InvalidProductError,
    Product,
    ProductId,
    validate_catalog_product,
)
from catalog_export.serialization import (
    load_products_json,
    product_to_dict,
)


def write_json_atomic(data: Any, output_path: str | Path) -> None:
    """Replace a JSON file in one step.

    The document is written to a sibling temp file which is then renamed
    over the target; on any failure the temp file is removed and the
    target is left as it was.

    Args:
        data: JSON-serializable document
        output_path: Destination file path

    Raises:
        TypeError: If data is not JSON-serializable
        OSError: If the file cannot be written or renamed
    """
    target = Path(output_path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False)
        os.replace(tmp_name, target)
    except Exception:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


def _new_id() -> str:
    return str(uuid.uuid4())


def _with_child_ids(product: Product) -> Product:
    """Give attributes and variants without an id a fresh one."""
    return replace(
        product,
        attributes=[a if a.id else replace(a, id=_new_id()) for a in product.attributes],
        variants=[v if v.id else replace(v, id=_new_id()) for v in product.variants],
    )


class JsonCatalogStore:
    """CRUD access to a catalog kept in a JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> list[Product]:
        if not self.path.exists():
            return []
        return load_products_json(self.path)

    def _write(self, products: list[Product]) -> None:
        write_json_atomic([product_to_dict(p) for p in products], self.path)
        logger.debug(f"Saved {len(products)} products to {self.path}")

    def _check_unique_sku(
        self, products: list[Product], product: Product, exclude_id: str | None = None
    ) -> None:
        if not product.sku:
            return
        for existing in products:
            if existing.id != exclude_id and existing.sku == product.sku:
                raise InvalidProductError(
                    f"SKU {product.sku!r} already used by product {existing.id!r}"
                )

    def create_many(self, products: Sequence[Product]) -> list[Product]:
        """Store a batch of new products with a single write.

        Nothing is written unless every product is valid and no SKU is
        reused, either against the catalog or within the batch.

        Args:
            products: Products to add (ids and created_at are replaced)

        Returns:
            The stored products, in batch order

        Raises:
            InvalidProductError: Naming the batch index of the first bad product
        """
        existing = self._read()
        created_at = datetime.now(timezone.utc)

        batch: list[Product] = []
        for index, product in enumerate(products):
            if not isinstance(product, Product):
                raise InvalidProductError(
                    f"expected Product, got {type(product).__name__}", index
                )
            stored = _with_child_ids(
                replace(product, id=ProductId(_new_id()), created_at=created_at)
            )
            try:
                validate_catalog_product(stored)
                self._check_unique_sku(existing + batch, stored)
            except InvalidProductError as e:
                raise InvalidProductError(str(e), index) from e
            batch.append(stored)

        self._write(existing + batch)
        for stored in batch:
            logger.info(f"Created product {stored.id} ({stored.sku})")
        return batch

    def list(self) -> list[Product]:
        """All products, newest first."""
        return sorted(self._read(), key=lambda p: p.created_at, reverse=True)

    def get(self, product_id: str) -> Product:
        """Fetch one product.

        Raises:
            KeyError: If no product has this id
        """
        for product in self._read():
            if product.id == product_id:
                return product
        raise KeyError(f"Product not found: {product_id}")

    def create(self, product: Product) -> Product:
        """Store a new product under a freshly assigned id.

        Args:
            product: Product to add (its id and created_at are replaced)

        Returns:
            The stored product

        Raises:
            InvalidProductError: If the product breaks a catalog invariant
                or reuses an existing SKU
        """
        return self.create_many([product])[0]

    def update(self, product_id: str, product: Product) -> Product:
        """Replace a product's fields, keeping its id and creation time.

        Raises:
            KeyError: If no product has this id
            InvalidProductError: If the new fields break a catalog invariant
        """
        products = self._read()
        for position, existing in enumerate(products):
            if existing.id == product_id:
                break
        else:
            raise KeyError(f"Product not found: {product_id}")

        stored = _with_child_ids(
            replace(product, id=existing.id, created_at=existing.created_at)
        )
        validate_catalog_product(stored)
        self._check_unique_sku(products, stored, exclude_id=existing.id)

        products[position] = stored
        self._write(products)

        logger.info(f"Updated product {stored.id}")
        return stored

    def delete(self, product_id: str) -> None:
        """Remove a product and its attributes, variants and image references.

        Raises:
            KeyError: If no product has this id
        """
        products = self._read()
        remaining = [p for p in products if p.id != product_id]
        if len(remaining) == len(products):
            raise KeyError(f"Product not found: {product_id}")

        self._write(remaining)
        logger.info(f"Deleted product {product_id}")
