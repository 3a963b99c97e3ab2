"""Inventory item models and stock status rules."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class ItemKind(str, Enum):
    """Kind of inventory item."""

    CONSUMABLE = "consumable"
    SPARE_PART = "spare_part"
    WEAR_PART = "wear_part"


class StockStatus(str, Enum):
    """Stock level derived from quantity and minimum quantity."""

    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


def compute_stock_status(quantity: int, min_quantity: int) -> StockStatus:
    """Derive the stock status; ``quantity == min_quantity`` is still in stock."""
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity < min_quantity:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class InventoryItem(BaseModel):
    """Inventory item with stock levels and optional wear-part attributes."""

    id: int
    name: str
    category: str
    kind: ItemKind = ItemKind.CONSUMABLE
    quantity: int = Field(ge=0)
    min_quantity: int = Field(default=0, ge=0)
    status: StockStatus = StockStatus.OUT_OF_STOCK
    location: str | None = None
    description: str | None = None
    unit_price: Decimal | None = Field(default=None, ge=0)
    supplier: str | None = None

    # Wear part attributes
    usage_unit: str | None = None
    max_lifespan: float | None = Field(default=None, gt=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_updated: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def validate_wear_attributes(self) -> "InventoryItem":
        """Wear attributes belong to wear parts only, and wear parts need both."""
        has_wear_attrs = self.usage_unit is not None or self.max_lifespan is not None
        if self.kind == ItemKind.WEAR_PART:
            if self.usage_unit is None or self.max_lifespan is None:
                raise ValueError("wear parts require usage_unit and max_lifespan")
        elif has_wear_attrs:
            raise ValueError("usage_unit and max_lifespan are only valid for wear parts")
        return self

    @property
    def is_wear_part(self) -> bool:
        """Check if item tracks a rated lifespan."""
        return self.kind == ItemKind.WEAR_PART

    @property
    def is_low_stock(self) -> bool:
        """Check if item is low on stock."""
        return self.status == StockStatus.LOW_STOCK

    @property
    def is_available(self) -> bool:
        """Check if item is available."""
        return self.quantity > 0


class StockAdjustment(BaseModel):
    """Outcome of an atomic quantity adjustment."""

    item_id: int
    previous_quantity: int
    new_quantity: int
    new_status: StockStatus
