from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from retail_functions.models.entity import TableEntity


class OrderRequest(BaseModel):
    """Order envelope shared by the HTTP producer and the queue consumer.

    Serialized as camelCase JSON. Property names are matched case-insensitively
    on the way in, so ``CustomerId``, ``customerid`` and ``customer_id`` all bind.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    customer_id: str
    product_id: str
    quantity: int = Field(ge=1, strict=True)

    @model_validator(mode="before")
    @classmethod
    def match_property_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        aliases = {name.replace("_", ""): field.alias or name for name, field in cls.model_fields.items()}
        return {
            aliases.get(str(key).replace("_", "").lower(), key): value
            for key, value in data.items()
        }

    @field_validator("customer_id", "product_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def to_envelope(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_envelope(cls, text: str) -> "OrderRequest":
        return cls.model_validate_json(text)


class Product(BaseModel):
    PARTITION_KEY: ClassVar[str] = "Product"

    product_id: str
    price: Decimal = Decimal("0")

    @classmethod
    def from_entity(cls, entity: TableEntity) -> "Product":
        raw_price = entity.properties.get("Price")
        price = Decimal(str(raw_price)) if raw_price is not None else Decimal("0")
        return cls(product_id=entity.row_key, price=price)


class OrderStatus(str, Enum):
    PROCESSED = "Processed"


class ProcessedOrder(BaseModel):
    PARTITION_KEY: ClassVar[str] = "Order"

    row_key: str
    customer_id: str
    product_id: str
    quantity: int
    total_price: Decimal
    status: OrderStatus = OrderStatus.PROCESSED
    processed_on: datetime

    @property
    def partition_key(self) -> str:
        return self.PARTITION_KEY

    def to_properties(self) -> dict[str, Any]:
        return {
            "CustomerId": self.customer_id,
            "ProductId": self.product_id,
            "Quantity": self.quantity,
            "TotalPrice": self.total_price,
            "Status": self.status,
            "ProcessedOn": self.processed_on
        }

    @classmethod
    def from_entity(cls, entity: TableEntity) -> "ProcessedOrder":
        properties = entity.properties
        return cls(
            row_key=entity.row_key,
            customer_id=properties["CustomerId"],
            product_id=properties["ProductId"],
            quantity=properties["Quantity"],
            total_price=Decimal(str(properties["TotalPrice"])),
            status=properties["Status"],
            processed_on=properties["ProcessedOn"]
        )
