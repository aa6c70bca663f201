"""Type definitions for the product catalog.

Branded types (NewType) keep product ids, SKUs and image URLs from being
mixed up with arbitrary strings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, NewType

ProductId = NewType("ProductId", str)
SKU = NewType("SKU", str)
ImageUrl = NewType("ImageUrl", str)

ProductType = Literal["simple", "variable"]

PRODUCT_TYPES: tuple[str, ...] = ("simple", "variable")

Price = Decimal | int | float


class InvalidProductError(ValueError):
    """Raised when a product record breaks the catalog input contract."""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        if index is not None:
            message = f"Invalid product at index {index}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class ProductAttribute:
    """An attribute of a variable product (e.g. Color) and its allowed values."""

    id: str
    name: str
    values: list[str] = field(default_factory=list)  # e.g. ["Red", "Blue"]
    visible: bool = True  # Shown on the storefront
    variation: bool = True  # Usable to define variants


@dataclass(frozen=True)
class ProductVariant:
    """One purchasable combination of attribute values."""

    id: str
    sku: SKU
    attributes: dict[str, str] = field(default_factory=dict)  # {"Color": "Red"}
    price: Price | None = None  # Overrides the product price
    stock: int | None = None
    image: ImageUrl | None = None


@dataclass(frozen=True)
class Product:
    """A catalog product, fully denormalized (attributes and variants inline)."""

    id: ProductId
    name: str
    sku: SKU
    type: ProductType = "simple"
    price: Price | None = None  # Authoritative for simple products only
    short_description: str = ""
    long_description: str = ""
    main_image: ImageUrl | None = None
    gallery_images: list[ImageUrl] = field(default_factory=list)  # Display order
    attributes: list[ProductAttribute] = field(default_factory=list)
    variants: list[ProductVariant] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ExportConfig:
    """Configuration for a catalog export run."""

    output_dir: str = "output"
    filename_prefix: str = "woocommerce-products"
    min_attribute_slots: int = 1  # Attribute column families always emitted
    encoding: str = "utf-8"


def validate_product(product: object, index: int | None = None) -> Product:
    """Check the fields the exporter cannot work without.

    Args:
        product: Candidate product record
        index: Position of the record in its batch, used in error messages

    Returns:
        The product, unchanged

    Raises:
        InvalidProductError: If the record is not a usable Product
    """
    if not isinstance(product, Product):
        raise InvalidProductError(
            f"expected Product, got {type(product).__name__}", index
        )
    if not product.id:
        raise InvalidProductError("missing id", index)
    if product.sku is None:
        raise InvalidProductError(f"product {product.id!r} has no SKU", index)
    if product.type not in PRODUCT_TYPES:
        raise InvalidProductError(
            f"product {product.id!r} has unknown type {product.type!r}", index
        )

    for position, attribute in enumerate(product.attributes):
        if not isinstance(attribute, ProductAttribute):
            raise InvalidProductError(
                f"product {product.id!r} attribute {position} is "
                f"{type(attribute).__name__}, expected ProductAttribute",
                index,
            )
    for position, variant in enumerate(product.variants):
        if not isinstance(variant, ProductVariant):
            raise InvalidProductError(
                f"product {product.id!r} variant {position} is "
                f"{type(variant).__name__}, expected ProductVariant",
                index,
            )
    return product


def validate_catalog_product(product: Product) -> None:
    """Enforce the catalog invariants checked when a product is stored.

    Simple products carry no attributes or variants. Every variant of a
    variable product selects, for declared attributes only, a value from
    that attribute's value set.

    Raises:
        InvalidProductError: If an invariant does not hold
    """
    validate_product(product)

    if product.type == "simple":
        if product.attributes or product.variants:
            raise InvalidProductError(
                f"simple product {product.id!r} cannot have attributes or variants"
            )
        return

    allowed = {attribute.name: set(attribute.values) for attribute in product.attributes}
    for variant in product.variants:
        for name, value in variant.attributes.items():
            if name not in allowed:
                raise InvalidProductError(
                    f"variant {variant.sku!r} uses undeclared attribute {name!r}"
                )
            if value not in allowed[name]:
                raise InvalidProductError(
                    f"variant {variant.sku!r} has value {value!r} "
                    f"outside attribute {name!r}"
                )
