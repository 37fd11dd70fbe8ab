"""Restaurant table model."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TableKind(str, Enum):
    TABLE = "table"
    STOOL = "stool"


class TableStatus(str, Enum):
    """Floor status. Advisory, except that blocked tables are never assigned."""

    FREE = "free"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    BLOCKED = "blocked"


class RestaurantTable(BaseModel):
    """A physical table or bar stool."""

    model_config = ConfigDict(frozen=True)

    id: str
    tenant_id: str
    name: str = Field(..., description='Display name, e.g. "T1"')
    capacity: int = Field(..., ge=1, description="Seats")
    kind: TableKind = Field(default=TableKind.TABLE)
    status: TableStatus = Field(default=TableStatus.FREE)
    zone: str | None = Field(None, description='Zone label, e.g. "terrace"')

    @property
    def effective_capacity(self) -> int:
        """Seats usable by one party; a stool always seats one."""
        return 1 if self.kind == TableKind.STOOL else self.capacity
