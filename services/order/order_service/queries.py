"""
Order Service — クエリハンドラ (CQRS の Read 側)

orders / customers / orders_products を結合して、
フロントエンド向けの注文詳細を返す。
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession


def _isoformat(value) -> str | None:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, datetime) else str(value)


async def _load_items(session: AsyncSession, order_ids: list[str]) -> dict[str, list[dict]]:
    """注文 ID ごとの明細を返す。"""
    if not order_ids:
        return {}
    result = await session.execute(
        text("""
            SELECT order_id, product_id, price, quantity
            FROM orders_products
            WHERE order_id IN :order_ids
            ORDER BY order_id, line_no ASC
        """).bindparams(bindparam("order_ids", expanding=True)),
        {"order_ids": order_ids},
    )
    items: dict[str, list[dict]] = defaultdict(list)
    for row in result.fetchall():
        items[str(row.order_id)].append({
            "product_id": str(row.product_id),
            "quantity": row.quantity,
            "unit_price": str(Decimal(str(row.price))),
        })
    return items


def _to_dict(row, items: list[dict]) -> dict:
    total = sum(
        (Decimal(item["unit_price"]) * item["quantity"] for item in items),
        Decimal("0"),
    )
    return {
        "id": str(row.id),
        "customer": {
            "id": str(row.customer_id),
            "name": row.customer_name,
            "email": row.customer_email,
        },
        "line_items": items,
        "total": str(total),
        "created_at": _isoformat(row.created_at),
    }


_ORDER_SELECT = """
    SELECT o.id, o.created_at,
           c.id AS customer_id, c.name AS customer_name, c.email AS customer_email
    FROM orders o
    JOIN customers c ON c.id = o.customer_id
"""


async def get_order(session: AsyncSession, order_id: UUID) -> dict | None:
    """注文を明細付きで取得する。"""
    result = await session.execute(
        text(_ORDER_SELECT + " WHERE o.id = :id"),
        {"id": str(order_id)},
    )
    row = result.fetchone()
    if not row:
        return None
    items = await _load_items(session, [str(row.id)])
    return _to_dict(row, items.get(str(row.id), []))


async def list_orders(session: AsyncSession) -> list[dict]:
    """全注文一覧（新しい順）"""
    result = await session.execute(
        text(_ORDER_SELECT + " ORDER BY o.created_at DESC"),
    )
    rows = result.fetchall()
    items = await _load_items(session, [str(row.id) for row in rows])
    return [_to_dict(row, items.get(str(row.id), [])) for row in rows]
