"""
Order Service — SQLAlchemy によるリポジトリ実装

repositories.py の契約を PostgreSQL（テストでは SQLite）上で実装する。
在庫の更新は「観測した在庫数と一致する場合のみ書き込む」条件付き UPDATE で、
同じ商品を同時に注文したリクエスト同士の競合を検知する。
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import redis.asyncio as aioredis
from sqlalchemy import DateTime, Numeric, bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import StockConflict
from .events import OrderCreated, OrderCreatedItem
from .models import CatalogProduct, Customer, Order, OrderLineItem, StockUpdate

logger = logging.getLogger(__name__)


class SqlCustomerLookup:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, customer_id: UUID) -> Customer | None:
        result = await self.session.execute(
            text("SELECT id, name, email FROM customers WHERE id = :id"),
            {"id": str(customer_id)},
        )
        row = result.fetchone()
        if not row:
            return None
        return Customer(id=UUID(str(row.id)), name=row.name, email=row.email)


class SqlProductCatalog:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_all_by_id(self, product_ids: set[UUID]) -> list[CatalogProduct]:
        if not product_ids:
            return []
        stmt = text(
            "SELECT id, name, price, quantity FROM products WHERE id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        result = await self.session.execute(
            stmt, {"ids": [str(pid) for pid in product_ids]}
        )
        return [
            CatalogProduct(
                id=UUID(str(row.id)),
                name=row.name,
                unit_price=Decimal(str(row.price)),
                available_quantity=row.quantity,
            )
            for row in result.fetchall()
        ]

    async def update_quantity(self, updates: list[StockUpdate]) -> None:
        """
        在庫数をまとめて更新する。

        WHERE quantity = :expected で楽観的ロックを実現:
        他のリクエストが先に在庫を減らしていれば更新件数が 0 になる。
        1件でも競合したらバッチ全体をロールバックして StockConflict を送出する。
        """
        now = datetime.now(timezone.utc)
        stmt = text("""
            UPDATE products
            SET quantity = :new_qty, updated_at = :now
            WHERE id = :id AND quantity = :expected
        """).bindparams(bindparam("now", type_=DateTime(timezone=True)))

        conflicts: list[UUID] = []
        for update in updates:
            result = await self.session.execute(
                stmt,
                {
                    "id": str(update.product_id),
                    "new_qty": update.new_quantity,
                    "expected": update.expected_quantity,
                    "now": now,
                },
            )
            if result.rowcount == 0:
                conflicts.append(update.product_id)

        if conflicts:
            await self.session.rollback()
            raise StockConflict(conflicts)

        await self.session.commit()


class SqlOrderStore:
    """
    注文と明細を保存し、OrderCreated イベントを発行する。

    1. orders / orders_products に INSERT
    2. コミット
    3. Redis Pub/Sub で OrderCreated を発行（他サービスへ通知、失敗してもログのみ）
    """

    def __init__(self, session: AsyncSession, redis: aioredis.Redis | None = None):
        self.session = session
        self.redis = redis

    async def create(
        self,
        customer: Customer,
        line_items: list[OrderLineItem],
    ) -> Order:
        order_id = uuid4()
        now = datetime.now(timezone.utc)

        await self.session.execute(
            text("""
                INSERT INTO orders (id, customer_id, created_at, updated_at)
                VALUES (:id, :customer_id, :now, :now)
            """).bindparams(bindparam("now", type_=DateTime(timezone=True))),
            {"id": str(order_id), "customer_id": str(customer.id), "now": now},
        )
        await self.session.execute(
            text("""
                INSERT INTO orders_products
                    (id, order_id, line_no, product_id, price, quantity,
                     created_at, updated_at)
                VALUES
                    (:id, :order_id, :line_no, :product_id, :price, :quantity,
                     :now, :now)
            """).bindparams(
                bindparam("price", type_=Numeric(10, 2)),
                bindparam("now", type_=DateTime(timezone=True)),
            ),
            [
                {
                    "id": str(uuid4()),
                    "order_id": str(order_id),
                    "line_no": line_no,
                    "product_id": str(item.product_id),
                    "price": item.unit_price,
                    "quantity": item.quantity,
                    "now": now,
                }
                for line_no, item in enumerate(line_items)
            ],
        )
        await self.session.commit()

        order = Order(
            id=order_id,
            customer=customer,
            line_items=line_items,
            created_at=now,
        )
        await self._publish_order_created(order)
        return order

    async def _publish_order_created(self, order: Order) -> None:
        if self.redis is None:
            return
        event = OrderCreated(
            order_id=order.id,
            customer_id=order.customer.id,
            customer_name=order.customer.name,
            items=[
                OrderCreatedItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in order.line_items
            ],
            total_price=order.total,
            timestamp=order.created_at,
        )
        # コミット済みなので通知の失敗で在庫減算を止めない
        try:
            await self.redis.publish("order_events", json.dumps({
                "event_type": "OrderCreated",
                "data": event.model_dump(mode="json"),
            }, default=str))
        except Exception:
            logger.exception("Failed to publish OrderCreated for order %s", order.id)
            return
        logger.debug("Published OrderCreated for order %s", order.id)
