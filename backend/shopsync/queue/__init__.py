"""Operation queue package."""
from shopsync.queue.facades import OfflineFacades, ProductsQueue, SalesQueue, ServicesQueue
from shopsync.queue.operations import OperationQueue
from shopsync.queue.schemas import (
    EntryStatus,
    OperationKind,
    ProductAddPayload,
    ProductSaleLine,
    ProductSalePayload,
    QueueCounts,
    QueueEntry,
    QueueSummary,
    ServiceAddPayload,
    ServiceOperationLine,
    WithdrawalPayload,
)

__all__ = [
    "EntryStatus",
    "OfflineFacades",
    "OperationKind",
    "OperationQueue",
    "ProductAddPayload",
    "ProductSaleLine",
    "ProductSalePayload",
    "ProductsQueue",
    "QueueCounts",
    "QueueEntry",
    "QueueSummary",
    "SalesQueue",
    "ServiceAddPayload",
    "ServiceOperationLine",
    "ServicesQueue",
    "WithdrawalPayload",
]
