"""Normalized internal event shapes produced by webhook ingress."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProductContext:
    """What the dispatcher needs to know about a restocked variant."""

    shop: str
    variant_id: str
    product_title: str | None = None
    variant_title: str | None = None
    product_handle: str | None = None

    @property
    def product_url(self) -> str:
        if self.product_handle:
            return f"https://{self.shop}/products/{self.product_handle}?variant={self.variant_id}"
        return f"https://{self.shop}"

    def to_dict(self) -> dict[str, str | None]:
        return {
            "shop": self.shop,
            "variant_id": self.variant_id,
            "product_title": self.product_title,
            "variant_title": self.variant_title,
            "product_handle": self.product_handle,
        }


@dataclass(frozen=True)
class RestockCandidate:
    """One variant from a product update payload."""

    shop: str
    variant_id: str
    quantity: int
    product_title: str
    product_handle: str | None = None
    variant_title: str | None = None
    price: float | None = None

    @property
    def is_restock(self) -> bool:
        return self.quantity > 0

    def to_context(self) -> ProductContext:
        return ProductContext(
            shop=self.shop,
            variant_id=self.variant_id,
            product_title=self.product_title,
            variant_title=self.variant_title,
            product_handle=self.product_handle,
        )


@dataclass(frozen=True)
class OrderEvent:
    """An order-created payload reduced to what attribution needs."""

    shop: str
    order_email: str
    line_items: list[str] = field(default_factory=list)
    order_id: str | None = None


@dataclass(frozen=True)
class InventoryLevelEvent:
    """Availability change for an inventory item at some location."""

    shop: str
    inventory_item_id: str
    available: int

    @property
    def is_restock(self) -> bool:
        return self.available > 0
