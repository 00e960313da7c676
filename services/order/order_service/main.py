"""
Order Service — FastAPI エントリーポイント

CQRS パターンに従い、Command (POST) と Query (GET) のエンドポイントを分離。
注文作成は OrderCreationWorkflow に委譲し、ワークフローのエラーは
例外ハンドラで {kind, detail, ...} の JSON に変換する。
"""

import logging
import os
from contextlib import asynccontextmanager
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import queries
from .commands import OrderCreationWorkflow
from .errors import OrderError
from .models import OrderRequest
from .sql_repositories import SqlCustomerLookup, SqlOrderStore, SqlProductCatalog

DATABASE_URL = os.environ["DATABASE_URL"]
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)-8s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    redis_pool = aioredis.from_url(REDIS_URL, decode_responses=True)
    logger.info("Order service started")
    yield
    await redis_pool.aclose()


app = FastAPI(title="Order Service", lifespan=lifespan)


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def build_workflow(session: AsyncSession) -> OrderCreationWorkflow:
    return OrderCreationWorkflow(
        customers=SqlCustomerLookup(session),
        catalog=SqlProductCatalog(session),
        orders=SqlOrderStore(session, redis_pool),
    )


# ── Command Endpoints (Write 側) ─────────────────

@app.post("/commands/orders", status_code=201)
async def cmd_create_order(req: OrderRequest):
    """注文作成コマンド"""
    async with async_session() as session:
        order = await build_workflow(session).execute(req)
        return order.model_dump(mode="json")


# ── Query Endpoints (Read 側) ────────────────────

@app.get("/queries/orders")
async def query_list_orders():
    """全注文を取得"""
    async with async_session() as session:
        return await queries.list_orders(session)


@app.get("/queries/orders/{order_id}")
async def query_get_order(order_id: UUID):
    """指定注文を明細付きで取得"""
    async with async_session() as session:
        order = await queries.get_order(session, order_id)
        if not order:
            raise HTTPException(404, "Order not found")
        return order


@app.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}
