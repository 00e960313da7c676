"""SQLite 上にテスト用スキーマとデータを用意するヘルパー"""

from decimal import Decimal

from sqlalchemy import Numeric, bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine

from order_service.sql_repositories import SqlProductCatalog

SCHEMA = [
    """
    CREATE TABLE customers (
        id VARCHAR PRIMARY KEY,
        name VARCHAR NOT NULL,
        email VARCHAR NOT NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE products (
        id VARCHAR PRIMARY KEY,
        name VARCHAR NOT NULL,
        price NUMERIC(10, 2) NOT NULL,
        quantity INTEGER NOT NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE orders (
        id VARCHAR PRIMARY KEY,
        customer_id VARCHAR NOT NULL REFERENCES customers (id),
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE orders_products (
        id VARCHAR PRIMARY KEY,
        order_id VARCHAR NOT NULL REFERENCES orders (id),
        line_no INTEGER NOT NULL,
        product_id VARCHAR NOT NULL REFERENCES products (id),
        price NUMERIC(10, 2) NOT NULL,
        quantity INTEGER NOT NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
]


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        for ddl in SCHEMA:
            await conn.execute(text(ddl))


async def insert_customer(engine: AsyncEngine, customer) -> None:
    async with engine.begin() as conn:
        await conn.execute(
            text("INSERT INTO customers (id, name, email) VALUES (:id, :name, :email)"),
            {"id": str(customer.id), "name": customer.name, "email": customer.email},
        )


async def insert_product(engine: AsyncEngine, product) -> None:
    async with engine.begin() as conn:
        await conn.execute(
            text("""
                INSERT INTO products (id, name, price, quantity)
                VALUES (:id, :name, :price, :quantity)
            """).bindparams(bindparam("price", type_=Numeric(10, 2))),
            {
                "id": str(product.id),
                "name": product.name,
                "price": product.unit_price,
                "quantity": product.available_quantity,
            },
        )


async def stock_of(engine: AsyncEngine, product_id) -> int:
    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT quantity FROM products WHERE id = :id"), {"id": str(product_id)}
        )
        return result.scalar_one()


async def line_prices(engine: AsyncEngine, order_id) -> list[tuple[str, int, Decimal]]:
    async with engine.connect() as conn:
        result = await conn.execute(
            text("""
                SELECT product_id, quantity, price FROM orders_products
                WHERE order_id = :id ORDER BY line_no
            """),
            {"id": str(order_id)},
        )
        return [
            (row.product_id, row.quantity, Decimal(str(row.price)))
            for row in result.fetchall()
        ]


async def count_orders(engine: AsyncEngine) -> int:
    async with engine.connect() as conn:
        result = await conn.execute(text("SELECT COUNT(*) FROM orders"))
        return result.scalar_one()


class RacingSqlCatalog(SqlProductCatalog):
    """商品を読んだ直後に別の注文が在庫を変えた状況を再現する"""

    def __init__(self, session, product_id, quantity: int):
        super().__init__(session)
        self.product_id = product_id
        self.quantity = quantity

    async def find_all_by_id(self, product_ids):
        found = await super().find_all_by_id(product_ids)
        await self.session.execute(
            text("UPDATE products SET quantity = :qty WHERE id = :id"),
            {"qty": self.quantity, "id": str(self.product_id)},
        )
        return found
