"""
Order Service — リポジトリのインターフェース

ワークフローが依存する協力者(collaborator)の契約。
コンストラクタで注入するので、テストではインメモリ実装に差し替えられる。
"""

from typing import Protocol
from uuid import UUID

from .models import CatalogProduct, Customer, Order, OrderLineItem, StockUpdate


class CustomerLookup(Protocol):
    async def find_by_id(self, customer_id: UUID) -> Customer | None:
        ...


class ProductCatalog(Protocol):
    async def find_all_by_id(self, product_ids: set[UUID]) -> list[CatalogProduct]:
        """一致した商品だけを返す。存在しない ID はエラーにせず単に含めない。"""
        ...

    async def update_quantity(self, updates: list[StockUpdate]) -> None:
        """
        在庫数をまとめて更新する。

        いずれかの商品の在庫数が expected_quantity から変化していたら
        何も適用せず StockConflict を送出する。
        """
        ...


class OrderStore(Protocol):
    async def create(
        self,
        customer: Customer,
        line_items: list[OrderLineItem],
    ) -> Order:
        ...
