"""
Screen controllers.

Each screen holds its own UI state and issues pass-through calls to the
backend clients. Failures are logged and shown as an alert; nothing is retried.
"""

from marketplace.screens.auth import LoginScreen, RegisterScreen
from marketplace.screens.chat import ChatScreen
from marketplace.screens.inbox import InboxScreen
from marketplace.screens.listings import (
    MarketplaceScreen,
    ProductDetailScreen,
    SearchScreen,
)
from marketplace.screens.products import EditProductScreen, SellProductScreen
from marketplace.screens.profile import (
    EditProfileScreen,
    MyProfileScreen,
    SellerProfileScreen,
    SettingsScreen,
)

__all__ = [
    "ChatScreen",
    "EditProductScreen",
    "EditProfileScreen",
    "InboxScreen",
    "LoginScreen",
    "MarketplaceScreen",
    "MyProfileScreen",
    "ProductDetailScreen",
    "RegisterScreen",
    "SearchScreen",
    "SellProductScreen",
    "SellerProfileScreen",
    "SettingsScreen",
]
