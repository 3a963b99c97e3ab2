"""Usage ledger models."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from labmaint.models.notification import Notification


class UsageLogEntry(BaseModel):
    """Single usage event of an inventory item on a piece of equipment.

    Entries are never edited in place. A negative ``quantity_used`` resets the
    cumulative usage after maintenance; ``stock_deducted`` is the stock taken
    from inventory when the entry was recorded.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    equipment_id: int
    equipment_name: str
    inventory_item_id: int
    inventory_item_name: str
    usage_date: date
    quantity_used: float
    unit: str
    responsible: str | None = None
    comment: str | None = None
    stock_deducted: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def usage_key(self) -> str:
        """Composite key of the equipment/item pair."""
        return usage_key(self.equipment_id, self.inventory_item_id)


def usage_key(equipment_id: int, inventory_item_id: int) -> str:
    """Composite key used for usage-driven alerts."""
    return f"{equipment_id}_{inventory_item_id}"


class UsageRecordResult(BaseModel):
    """Outcome of recording a usage entry."""

    entry: UsageLogEntry
    cumulative_usage: float
    usage_percentage: float | None = None
    notification: Notification | None = None


class UsageSummary(BaseModel):
    """Cumulative usage of a wear item on a piece of equipment."""

    key: str
    equipment_id: int
    equipment_name: str
    inventory_item_id: int
    inventory_item_name: str
    unit: str
    cumulative_usage: float
    max_lifespan: float
    usage_percentage: float
    needs_maintenance: bool
    alert: bool
