"""Typed producers mapping business actions onto queue entries.

Façades only write. Each one knows the endpoint, method and payload shape of
its operation kind; the queue and the synchronizer never do. Invalid input
surfaces as ``InvalidOperationError`` from the queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from shopsync.queue.operations import OperationQueue
from shopsync.queue.schemas import OperationKind, ProductSaleLine, ServiceOperationLine

PRODUCT_SALES_ENDPOINT = "/api/product-sales"
WITHDRAWALS_ENDPOINT = "/api/withdrawals"
PRODUCTS_ENDPOINT = "/api/products"
SERVICE_OPERATIONS_ENDPOINT = "/api/admin/service-operations"


class SalesQueue:
    """Product sales and cash withdrawals."""

    def __init__(self, queue: OperationQueue):
        self.queue = queue

    def queue_product_sale(
        self,
        lines: Iterable[ProductSaleLine | Mapping],
        *,
        by: str | None = None,
        payment_image_url: str | None = None,
    ) -> str:
        payload = {
            "product_sales": list(lines),
            "by": by,
            "payment_image_url": payment_image_url,
        }
        return self.queue.enqueue(OperationKind.product_sale, payload, PRODUCT_SALES_ENDPOINT)

    def queue_sale(self, product_id: str, sold_quantity: int) -> str:
        """Sell ``sold_quantity`` units of one product."""
        return self.queue_product_sale([{"product_id": product_id, "sold_quantity": sold_quantity}])

    def queue_withdrawal(self, amount: float, reason: str) -> str:
        payload = {"amount": amount, "reason": reason}
        return self.queue.enqueue(OperationKind.withdrawal, payload, WITHDRAWALS_ENDPOINT)


class ProductsQueue:
    def __init__(self, queue: OperationQueue):
        self.queue = queue

    def queue_product(
        self,
        name: str,
        quantity: int,
        quantity_type: str,
        price_per_unit: float,
    ) -> str:
        payload = {
            "name": name,
            "quantity": quantity,
            "quantity_type": quantity_type,
            "price_per_unit": price_per_unit,
        }
        return self.queue.enqueue(OperationKind.product_add, payload, PRODUCTS_ENDPOINT)


class ServicesQueue:
    def __init__(self, queue: OperationQueue):
        self.queue = queue

    def queue_services(self, operations: Iterable[ServiceOperationLine | Mapping]) -> str:
        payload = {"service_operations": list(operations)}
        return self.queue.enqueue(OperationKind.service_add, payload, SERVICE_OPERATIONS_ENDPOINT)


@dataclass(slots=True)
class OfflineFacades:
    sales: SalesQueue
    products: ProductsQueue
    services: ServicesQueue

    @classmethod
    def for_queue(cls, queue: OperationQueue) -> "OfflineFacades":
        return cls(sales=SalesQueue(queue), products=ProductsQueue(queue), services=ServicesQueue(queue))
