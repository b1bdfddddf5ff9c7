# app/models.py
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError


class Category(str, Enum):
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    HOME = "home"
    KITCHEN = "kitchen"
    SPORTS = "sports"
    OTHER = "other"


CATEGORIES = [c.value for c in Category]

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000


class ProductIn(BaseModel):
    """Writable product fields. id and timestamps belong to the store."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    description: str = Field(min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    price: float = Field(ge=0, allow_inf_nan=False)
    category: Category
    in_stock: bool = Field(default=True, alias="inStock")

    @field_validator("price", mode="before")
    @classmethod
    def _price_is_number(cls, v: Any) -> Any:
        # bools are ints to python; a price of True is not a number here
        if isinstance(v, bool):
            raise PydanticCustomError("float_type", "Input should be a valid number")
        return v

    @field_validator("category", mode="before")
    @classmethod
    def _lowercase_category(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
        if v is None or v == "":
            raise PydanticCustomError("category_required", "Category is required")
        return v

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category": self.category.value,
            "inStock": self.in_stock,
        }
