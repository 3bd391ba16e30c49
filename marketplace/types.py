"""
Shared enums and constants for the marketplace screens.
"""

from enum import StrEnum


class ProductCondition(StrEnum):
    NEW = "new"
    USED_LIKE_NEW = "used - like new"
    USED_GOOD = "used - good"
    USED_FAIR = "used - fair"


class ChangeEventType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


class AuthChangeEvent(StrEnum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


ALL_CATEGORIES = "All"

CATEGORIES = (
    ALL_CATEGORIES,
    "Electronics",
    "Furniture",
    "Food",
    "Arts and Crafts",
    "Home",
    "Education",
    "Health and Beauty",
    "Clothing",
    "Toys and Games",
    "Sports",
    "Jewelry",
    "Miscellaneous",
)

USERS_TABLE = "users"
PRODUCTS_TABLE = "products"
MESSAGES_TABLE = "messages"
