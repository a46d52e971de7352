"""Queue entry and operation payload schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class OperationKind(str, Enum):
    """Closed set of operations that can be queued while offline."""
    product_sale = "product_sale"
    withdrawal = "withdrawal"
    product_add = "product_add"
    service_add = "service_add"


class EntryStatus(str, Enum):
    """Lifecycle status of a queue entry. Success removes the entry."""
    pending = "pending"
    syncing = "syncing"  # Transient, recovered to pending on restart
    failed = "failed"    # Terminal, retry budget exhausted


HttpMethod = Literal["POST", "PUT", "DELETE"]


class RequestBody(BaseModel):
    """Base for models serialized as camelCase JSON request bodies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductSaleLine(RequestBody):
    product_id: str = Field(min_length=1)
    sold_quantity: int = Field(gt=0)
    status: str | None = None


class ServiceOperationLine(RequestBody):
    name: str
    price: float = Field(ge=0)
    worker_name: str
    worker_role: Literal["barber", "washer"]
    worker_id: str
    status: str = "pending"


class OperationPayload(RequestBody):
    """Typed payload of one queued operation.

    ``kind`` discriminates the union and is stripped from the request body.
    """

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"kind"}, exclude_none=True)


class ProductSalePayload(OperationPayload):
    kind: Literal["product_sale"] = "product_sale"
    product_sales: list[ProductSaleLine] = Field(min_length=1)
    by: str | None = None
    payment_image_url: str | None = None


class WithdrawalPayload(OperationPayload):
    kind: Literal["withdrawal"] = "withdrawal"
    reason: str
    amount: float = Field(gt=0)


class ProductAddPayload(OperationPayload):
    kind: Literal["product_add"] = "product_add"
    name: str = Field(min_length=1)
    quantity: int = Field(ge=0)
    quantity_type: str
    price_per_unit: float = Field(ge=0)


class ServiceAddPayload(OperationPayload):
    kind: Literal["service_add"] = "service_add"
    service_operations: list[ServiceOperationLine] = Field(min_length=1)


AnyPayload = Annotated[
    Union[ProductSalePayload, WithdrawalPayload, ProductAddPayload, ServiceAddPayload],
    Field(discriminator="kind"),
]


class QueueEntry(BaseModel):
    """One durably stored pending write."""

    id: str
    payload: AnyPayload
    endpoint: str
    method: HttpMethod = "POST"
    enqueued_at: datetime
    status: EntryStatus = EntryStatus.pending
    retry_count: int = Field(default=0, ge=0)
    last_error: str | None = None

    @computed_field
    @property
    def kind(self) -> OperationKind:
        return OperationKind(self.payload.kind)

    def body(self) -> dict[str, Any]:
        return self.payload.to_body()


class QueueCounts(BaseModel):
    pending: int = 0
    syncing: int = 0
    failed: int = 0
    total: int = 0


class QueueSummary(QueueCounts):
    sales: int = 0
    products: int = 0
    services: int = 0
