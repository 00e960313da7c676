"""
Order Service — ドメインモデル

注文作成ワークフローが扱うデータ型。
OrderLineItem は注文時点の価格スナップショットなので不変(frozen)として扱う。
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, computed_field


class RequestedItem(BaseModel):
    product_id: UUID
    quantity: PositiveInt


class OrderRequest(BaseModel):
    """注文リクエスト（入力のみ。そのまま永続化はしない）"""
    customer_id: UUID
    items: list[RequestedItem] = Field(min_length=1)


class Customer(BaseModel):
    id: UUID
    name: str = ""
    email: str = ""


class CatalogProduct(BaseModel):
    """カタログ上の商品の現在の状態（価格と在庫数）"""
    id: UUID
    name: str = ""
    unit_price: Decimal = Field(ge=0)
    available_quantity: int = Field(ge=0)


class OrderLineItem(BaseModel):
    """注文明細 — unit_price は注文時点の価格で固定される"""
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: PositiveInt
    unit_price: Decimal


class Order(BaseModel):
    id: UUID
    customer: Customer
    line_items: list[OrderLineItem]
    created_at: datetime

    @computed_field
    @property
    def total(self) -> Decimal:
        return sum(
            (item.unit_price * item.quantity for item in self.line_items),
            Decimal("0"),
        )


class StockUpdate(BaseModel):
    """
    在庫数の更新指示。

    expected_quantity はバリデーション時に観測した在庫数。
    カタログは保存値がこの値と一致する場合のみ new_quantity を書き込む。
    """
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    new_quantity: int
    expected_quantity: int
