from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Type, TypeVar
from pydantic import BaseModel, BeforeValidator, AfterValidator, Field, ConfigDict
from bson import Decimal128, ObjectId

from erp_ledger.models.money import round_money, to_decimal

# Helper to handle ObjectId as string
PyObjectId = Annotated[str, BeforeValidator(str)]

def _coerce_decimal(value: Any) -> Any:
    """Accept Decimal128 from Mongo and floats/ints/Money from callers."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_decimal(value)
    if hasattr(value, "cents"):
        return value.amount
    return value

# Money stored on a model: always 2 places, half-up
MoneyAmount = Annotated[Decimal, BeforeValidator(_coerce_decimal), AfterValidator(round_money)]

# Quantities and percentages keep their full precision
DecimalValue = Annotated[Decimal, BeforeValidator(_coerce_decimal)]

T = TypeVar("T", bound="MongoModel")

def _to_bson(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        # BSON has no date-only type
        return datetime.combine(value, time.min)
    if isinstance(value, dict):
        return {_to_bson(k): _to_bson(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_bson(v) for v in value]
    return value

class MongoModel(BaseModel):
    """
    Base model for MongoDB documents with _id handling and serialization helpers.
    """
    id: PyObjectId | None = Field(default=None, alias="_id")

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        validate_assignment=True,
    )

    @classmethod
    def from_mongo(cls: Type[T], data: Dict[str, Any]) -> T:
        """Convert MongoDB document to Pydantic model."""
        if not data:
            return None
        data = dict(data)
        id = data.pop("_id", None)
        return cls(id=id, **data)

    def to_mongo(self, exclude_none: bool = False) -> Dict[str, Any]:
        """Convert Pydantic model to MongoDB document."""
        data = self.model_dump(by_alias=True, exclude_none=exclude_none)
        if data.get("_id") is None:
            data.pop("_id", None)
        else:
            data["_id"] = ObjectId(data["_id"]) if ObjectId.is_valid(data["_id"]) else data["_id"]
        return _to_bson(data)
