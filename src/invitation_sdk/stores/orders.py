"""Approved commerce orders that unlock invitation creation."""

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

logger = logging.getLogger("StoryInvitation.stores.orders")


class OrderError(ValueError):
    """Raised for duplicate, unknown, or already-used orders."""


class ApprovedOrder(BaseModel):
    """An order an admin (or the commerce check) has approved."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    product_order_id: str
    approved_at: int = Field(default_factory=lambda: int(time.time() * 1000))
    approved_by: str = "admin"
    used: bool = False
    used_at: Optional[int] = None
    invitation_id: Optional[str] = None


class OrderRegistry(BaseModel):
    """Persisted list of approved orders."""
    path: Path
    orders: dict[str, ApprovedOrder] = Field(default_factory=dict)

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def load(cls, path: Path) -> "OrderRegistry":
        path = Path(path)
        if not path.exists():
            return cls(path=path)
        data = json.loads(path.read_text(encoding="utf-8"))
        orders = {k: ApprovedOrder(**v) for k, v in data.get("orders", {}).items()}
        return cls(path=path, orders=orders)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"orders": {k: v.model_dump() for k, v in self.orders.items()}}
        self.path.write_text(json.dumps(data, indent=2))

    def find(self, product_order_id: str) -> Optional[ApprovedOrder]:
        product_order_id = product_order_id.strip()
        for order in self.orders.values():
            if order.product_order_id == product_order_id:
                return order
        return None

    def add(self, product_order_id: str, approved_by: str = "admin") -> ApprovedOrder:
        product_order_id = product_order_id.strip()
        if not product_order_id:
            raise OrderError("Order number is required")
        if self.find(product_order_id):
            raise OrderError(f"Order {product_order_id} is already registered")
        order = ApprovedOrder(product_order_id=product_order_id, approved_by=approved_by)
        self.orders[order.id] = order
        self.save()
        logger.info(f"Approved order {product_order_id}")
        return order

    def delete(self, order_id: str) -> bool:
        if order_id not in self.orders:
            return False
        del self.orders[order_id]
        self.save()
        return True

    def list_orders(self) -> list[ApprovedOrder]:
        return sorted(self.orders.values(), key=lambda o: o.approved_at, reverse=True)

    def redeem(self, product_order_id: str, invitation_id: str) -> ApprovedOrder:
        """Mark an approved, unused order as spent on ``invitation_id``."""
        order = self.find(product_order_id)
        if order is None:
            raise OrderError(f"Order {product_order_id} is not approved")
        if order.used:
            raise OrderError(f"Order {product_order_id} has already been used")
        order.used = True
        order.used_at = int(time.time() * 1000)
        order.invitation_id = invitation_id
        self.save()
        logger.info(f"Order {product_order_id} redeemed for invitation {invitation_id}")
        return order
