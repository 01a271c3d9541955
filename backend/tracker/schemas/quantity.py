"""
Pydantic schemas for session quantities.

A quantity travels as ``{"amount", "unit", "type"}``. Each ``type`` is its own
model so callers never have to inspect ``type`` before reading ``amount``:
for ``size_category`` the amount is an index into ``FLOWER_SIZES`` and is
exposed decoded through ``size``.
"""
import enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


# Ordered small-to-large; stored amounts index into this tuple
FLOWER_SIZES = ("tiny", "small", "medium", "large")


class QuantityType(str, enum.Enum):
    """Quantity type enumeration."""
    DECIMAL = "decimal"
    MILLIGRAMS = "milligrams"
    SIZE_CATEGORY = "size_category"


def format_amount(amount: float) -> str:
    """Render a number without a trailing ``.0`` for whole values."""
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


class DecimalQuantity(BaseModel):
    """Portion, puffs, dabs and other plain numeric amounts."""
    type: Literal["decimal"] = "decimal"
    amount: float
    unit: str

    def display(self) -> str:
        return f"{format_amount(self.amount)} {self.unit}"


class MilligramQuantity(BaseModel):
    """Dosed products measured in milligrams."""
    type: Literal["milligrams"] = "milligrams"
    amount: float
    unit: str

    def display(self) -> str:
        return f"{format_amount(self.amount)} {self.unit}"


class SizeCategoryQuantity(BaseModel):
    """Flower bowls recorded as a size on the fixed tiny..large scale."""
    type: Literal["size_category"] = "size_category"
    amount: int = Field(ge=0, le=len(FLOWER_SIZES) - 1)
    unit: str

    @property
    def size(self) -> str:
        return FLOWER_SIZES[self.amount]

    def display(self) -> str:
        return f"{self.size} {self.unit}"


Quantity = Annotated[
    Union[DecimalQuantity, MilligramQuantity, SizeCategoryQuantity],
    Field(discriminator="type"),
]

QuantityAdapter = TypeAdapter(Quantity)
