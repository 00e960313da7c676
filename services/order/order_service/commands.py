"""
Order Service — 注文作成ワークフロー (CQRS の Write 側)

  フロー（各ステップはゲート: 失敗したら以降のステップは実行しない）:
  ┌─────────────────────────────────────────────────────────┐
  │  1. 顧客の存在確認                                        │
  │  2. 商品をまとめて取得（1回の問い合わせ）                  │
  │  3. 存在しない商品をすべて列挙                            │
  │  4. 在庫不足の商品をすべて列挙                            │
  │  5. 価格スナップショットから明細を組み立て                 │
  │  6. 注文を永続化（ここで注文は確定）                       │
  │  7. 在庫を減算（ステップ 2 で読んだ値を基準にする）         │
  └─────────────────────────────────────────────────────────┘

ステップ 6 と 7 はトランザクションでまとまっていない。
7 が失敗しても注文は残り、StockReconciliationFailed で呼び出し側に伝える。
"""

import logging
from collections.abc import Sequence
from uuid import UUID

from .errors import (
    CustomerNotFound,
    InsufficientStock,
    NoProductsFound,
    ProductsNotFound,
    StockConflict,
    StockReconciliationFailed,
)
from .models import (
    CatalogProduct,
    Order,
    OrderLineItem,
    OrderRequest,
    RequestedItem,
    StockUpdate,
)
from .repositories import CustomerLookup, OrderStore, ProductCatalog

logger = logging.getLogger(__name__)


class OrderCreationWorkflow:
    """1件の注文リクエストを検証・価格確定・永続化・在庫減算する"""

    def __init__(
        self,
        customers: CustomerLookup,
        catalog: ProductCatalog,
        orders: OrderStore,
    ):
        self.customers = customers
        self.catalog = catalog
        self.orders = orders

    async def create_order(
        self,
        customer_id: UUID,
        items: Sequence[RequestedItem | dict],
    ) -> Order:
        """呼び出し側向けの入口。素の値から OrderRequest を組み立てる。"""
        request = OrderRequest(customer_id=customer_id, items=items)
        return await self.execute(request)

    async def execute(self, request: OrderRequest) -> Order:
        # ── Step 1: 顧客 ────────────────────────────
        customer = await self.customers.find_by_id(request.customer_id)
        if customer is None:
            logger.warning("Order rejected: customer %s not found", request.customer_id)
            raise CustomerNotFound(request.customer_id)

        # ── Step 2: 商品をまとめて取得 ──────────────
        requested_ids = list(dict.fromkeys(item.product_id for item in request.items))
        found = await self.catalog.find_all_by_id(set(requested_ids))
        if not found:
            logger.warning("Order rejected: none of %d products found", len(requested_ids))
            raise NoProductsFound()
        products: dict[UUID, CatalogProduct] = {p.id: p for p in found}

        # ── Step 3: 存在しない商品 ──────────────────
        missing = [pid for pid in requested_ids if pid not in products]
        if missing:
            logger.warning("Order rejected: products not found %s", missing)
            raise ProductsNotFound(missing)

        # ── Step 4: 在庫不足 ────────────────────────
        # 同じ商品が複数行ある場合は合計数量で判定する
        totals = _total_quantities(request.items)
        unavailable = [
            pid
            for pid, quantity in totals.items()
            if quantity > products[pid].available_quantity
        ]
        if unavailable:
            logger.warning("Order rejected: insufficient stock for %s", unavailable)
            raise InsufficientStock(unavailable)

        # ── Step 5: 価格スナップショット ─────────────
        # ここまでで全商品の存在と在庫は保証されている
        line_items = [
            OrderLineItem(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=products[item.product_id].unit_price,
            )
            for item in request.items
        ]

        # ── Step 6: 注文を永続化 ────────────────────
        order = await self.orders.create(customer, line_items)
        logger.info(
            "Order %s placed for customer %s (%d items, total=%s)",
            order.id, customer.id, len(line_items), order.total,
        )

        # ── Step 7: 在庫を減算 ──────────────────────
        updates = [
            StockUpdate(
                product_id=pid,
                new_quantity=products[pid].available_quantity - quantity,
                expected_quantity=products[pid].available_quantity,
            )
            for pid, quantity in totals.items()
        ]
        try:
            await self.catalog.update_quantity(updates)
        except StockConflict as e:
            logger.error(
                "Order %s placed but stock changed concurrently for %s",
                order.id, e.product_ids,
            )
            raise StockReconciliationFailed(order, e.product_ids) from e
        except Exception:
            logger.exception("Order %s placed but stock update failed", order.id)
            raise

        return order


def _total_quantities(items: list[RequestedItem]) -> dict[UUID, int]:
    """商品ごとの要求数量の合計（リクエスト内の出現順を保つ）"""
    totals: dict[UUID, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals
