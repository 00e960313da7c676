"""
Order Service — エラー定義

StockReconciliationFailed 以外はリクエスト拒否のエラー（クラッシュではない）。
FastAPI の例外ハンドラが to_dict() を JSON として返す。
"""

from uuid import UUID

from .models import Order


def _join(ids: list[UUID]) -> str:
    return ", ".join(str(i) for i in ids)


class OrderError(Exception):
    """注文作成ワークフローのエラー基底クラス"""

    kind = "OrderError"
    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.detail}


class CustomerNotFound(OrderError):
    kind = "CustomerNotFound"
    status_code = 404

    def __init__(self, customer_id: UUID) -> None:
        super().__init__("Customer not found")
        self.customer_id = customer_id

    def to_dict(self) -> dict:
        return {**super().to_dict(), "customer_id": str(self.customer_id)}


class NoProductsFound(OrderError):
    """要求された商品が1件も見つからなかった"""

    kind = "NoProductsFound"
    status_code = 404

    def __init__(self) -> None:
        super().__init__("Products not found")


class _ProductListError(OrderError):
    """商品 ID の一覧を持つエラー。ids はリクエスト内の出現順。"""

    message = ""

    def __init__(self, ids: list[UUID]) -> None:
        super().__init__(f"{self.message}: {_join(ids)}")
        self.ids = list(ids)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "ids": [str(i) for i in self.ids]}


class ProductsNotFound(_ProductListError):
    kind = "ProductsNotFound"
    status_code = 404
    message = "Could not find products"


class InsufficientStock(_ProductListError):
    kind = "InsufficientStock"
    status_code = 409
    message = "Unavailable quantity for products"


class StockReconciliationFailed(OrderError):
    """
    注文は永続化済みだが在庫の減算が適用できなかった。

    注文はロールバックしない。呼び出し側が照合(reconciliation)できるよう
    作成済みの注文を保持する。注文自体は成立しているので 202 を返し、
    クライアントが同じ注文を再送しないよう order と reconciliation_required を含める。
    """

    kind = "StockReconciliationFailed"
    status_code = 202

    def __init__(self, order: Order, ids: list[UUID]) -> None:
        super().__init__(
            f"Order {order.id} placed but stock could not be updated "
            f"for products: {_join(ids)}"
        )
        self.order = order
        self.ids = list(ids)

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "order_id": str(self.order.id),
            "ids": [str(i) for i in self.ids],
            "reconciliation_required": True,
            "order": self.order.model_dump(mode="json"),
        }


class StockConflict(Exception):
    """カタログの条件付き在庫更新が適用されなかった（在庫数が変化していた）"""

    def __init__(self, product_ids: list[UUID]) -> None:
        super().__init__(f"Stock changed concurrently for products: {_join(product_ids)}")
        self.product_ids = list(product_ids)
