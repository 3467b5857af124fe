"""SQLModel tables for cached domain entities.

One table per entity kind, keyed by the remote id. The remote API speaks
camelCase; ``from_api``/``to_api`` translate at the boundary.
"""

from typing import Any, ClassVar, Dict, FrozenSet, List, Optional
from sqlalchemy import Index
from sqlmodel import SQLModel, Field, Column, JSON


class Outlet(SQLModel, table=True):
    """Outlet (store) reference data."""

    __tablename__ = "outlets"

    indexed_fields: ClassVar[FrozenSet[str]] = frozenset({"region", "is_active", "name"})

    id: str = Field(primary_key=True, max_length=255)
    name: str = Field(index=True, max_length=255)
    region: str = Field(index=True, max_length=255)
    total_order: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Outlet":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            region=data.get("region", ""),
            total_order=int(data.get("totalOrder", 0) or 0),
            is_active=bool(data.get("isActive", True)),
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "totalOrder": self.total_order,
            "isActive": self.is_active,
        }


class Sale(SQLModel, table=True):
    """Sales record, partitioned by owning outlet."""

    __tablename__ = "sales"
    __table_args__ = (
        Index("ix_sales_outlet_id_date", "outlet_id", "date"),
    )

    indexed_fields: ClassVar[FrozenSet[str]] = frozenset({"outlet_id", "date"})

    id: str = Field(primary_key=True, max_length=255)
    outlet_id: str = Field(index=True, max_length=255)
    date: str = Field(index=True, max_length=32)  # ISO date, e.g. 2024-01-15
    product_name: str = Field(max_length=255)
    quantity: int = Field(default=0)
    unit_price: float = Field(default=0.0)
    total_amount: float = Field(default=0.0)
    customer_name: str = Field(default="", max_length=255)
    payment_method: str = Field(default="", max_length=100)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Sale":
        quantity = int(data.get("quantity", 0) or 0)
        unit_price = float(data.get("unitPrice", 0) or 0)
        total = data.get("totalAmount")
        return cls(
            id=str(data["id"]),
            outlet_id=str(data.get("outletId", "")),
            date=str(data.get("date", "")),
            product_name=data.get("productName", ""),
            quantity=quantity,
            unit_price=unit_price,
            total_amount=float(total) if total is not None else quantity * unit_price,
            customer_name=data.get("customerName", ""),
            payment_method=data.get("paymentMethod", ""),
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "outletId": self.outlet_id,
            "date": self.date,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalAmount": self.total_amount,
            "customerName": self.customer_name,
            "paymentMethod": self.payment_method,
        }


class DashboardStats(SQLModel, table=True):
    """Aggregated sales statistics by region (single snapshot row)."""

    __tablename__ = "dashboard_stats"

    indexed_fields: ClassVar[FrozenSet[str]] = frozenset()

    id: str = Field(primary_key=True, max_length=64)
    stats: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    total_sales: float = Field(default=0.0)
    total_outlets: int = Field(default=0)
    timestamp: Optional[float] = Field(default=None)

    @classmethod
    def from_api(cls, data: Dict[str, Any], *, record_id: str, timestamp: Optional[float] = None) -> "DashboardStats":
        stats = [
            {
                "region": item.get("region", ""),
                "total_sales": float(item.get("totalSales", 0) or 0),
                "outlet_count": int(item.get("outletCount", 0) or 0),
                "average_sales": float(item.get("averageSales", 0) or 0),
            }
            for item in data.get("stats", [])
        ]
        return cls(
            id=record_id,
            stats=stats,
            total_sales=float(data.get("totalSales", sum(s["total_sales"] for s in stats))),
            total_outlets=int(data.get("totalOutlets", sum(s["outlet_count"] for s in stats))),
            timestamp=timestamp,
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "stats": [
                {
                    "region": s.get("region"),
                    "totalSales": s.get("total_sales"),
                    "outletCount": s.get("outlet_count"),
                    "averageSales": s.get("average_sales"),
                }
                for s in self.stats or []
            ],
            "totalSales": self.total_sales,
            "totalOutlets": self.total_outlets,
            "timestamp": self.timestamp,
        }


# Tables managed by the record cache, in clear-all order
RECORD_TABLES = (Outlet, Sale, DashboardStats)
