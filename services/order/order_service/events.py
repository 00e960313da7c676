"""
Order Service — イベント定義

注文が永続化されたら OrderCreated を order_events チャネルに発行する。
イベントは過去形で命名し、不変(immutable)として扱う。
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class OrderCreatedItem(BaseModel):
    product_id: UUID
    quantity: int
    unit_price: Decimal


class OrderCreated(BaseModel):
    """注文が作成された"""
    order_id: UUID
    customer_id: UUID
    customer_name: str
    items: list[OrderCreatedItem]
    total_price: Decimal
    timestamp: datetime
