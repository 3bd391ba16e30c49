"""
Pydantic schemas for the screen forms.

Validators run in the order the screens check their inputs and raise
FormError, which carries the alert title along with the message.
"""

from __future__ import annotations

import math
import re
from typing import Optional

from pydantic import BaseModel, ValidationError, model_validator

from marketplace.types import ProductCondition

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8


class FormError(ValueError):
    def __init__(self, title: str, message: str):
        super().__init__(message)
        self.title = title
        self.message = message


def form_error_from(exc: ValidationError) -> FormError:
    """Return the first FormError raised while validating, or a generic one."""
    for error in exc.errors():
        original = (error.get("ctx") or {}).get("error")
        if isinstance(original, FormError):
            return original
    first = exc.errors()[0] if exc.errors() else {}
    return FormError("Validation Error", first.get("msg", str(exc)))


class RegistrationForm(BaseModel):
    full_name: str = ""
    email: str = ""
    student_id: str = ""
    password: str = ""
    confirm_password: str = ""
    has_cor: bool = False

    @model_validator(mode="after")
    def check_fields(self) -> "RegistrationForm":
        required = (
            self.full_name,
            self.email,
            self.student_id,
            self.password,
            self.confirm_password,
        )
        if not all(value.strip() for value in required) or not self.has_cor:
            raise FormError("Validation Error", "All fields are required.")
        if not EMAIL_PATTERN.match(self.email):
            raise FormError(
                "Validation Error", "Please enter a valid email address."
            )
        if len(self.password) < MIN_PASSWORD_LENGTH:
            raise FormError(
                "Validation Error",
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.",
            )
        if self.password != self.confirm_password:
            raise FormError("Validation Error", "Passwords do not match.")
        if not self.student_id.strip().isdigit():
            raise FormError("Validation Error", "Student ID must be a number.")
        return self

    @property
    def student_number(self) -> int:
        return int(self.student_id.strip())


class ProductForm(BaseModel):
    product_name: str = ""
    product_descrip: str = ""
    price: str = ""
    category: str = ""
    product_cond: ProductCondition = ProductCondition.NEW
    photos: list[str] = []

    @model_validator(mode="after")
    def check_fields(self) -> "ProductForm":
        if (
            not self.product_name.strip()
            or not self.photos
            or not self.category
            or not self.price.strip()
        ):
            raise FormError("Incomplete Information", "Please fill in all fields.")
        try:
            value = float(self.price)
        except ValueError:
            value = math.nan
        if math.isnan(value) or math.isinf(value) or value <= 0:
            raise FormError("Invalid Price", "Please enter a valid positive number.")
        return self

    @property
    def price_value(self) -> float:
        return float(self.price)

    @property
    def main_photo(self) -> str:
        return self.photos[0]

    def as_columns(self) -> dict:
        return {
            "product_name": self.product_name,
            "product_descrip": self.product_descrip,
            "product_img": self.main_photo,
            "product_cond": self.product_cond,
            "category": self.category,
            "price": self.price_value,
        }


class ProfileForm(BaseModel):
    full_name: str = ""
    bio: Optional[str] = None
    has_image: bool = False

    @model_validator(mode="after")
    def check_fields(self) -> "ProfileForm":
        if not self.full_name.strip() or not self.has_image:
            raise FormError("Incomplete Information", "Please fill in all fields.")
        return self
