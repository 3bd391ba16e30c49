"""
Marketplace, search and product detail screens.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from marketplace.db import ProductRecord, UserRecord
from marketplace.errors import BackendError, NotFoundError
from marketplace.screens.base import Screen
from marketplace.types import ALL_CATEGORIES, CATEGORIES

logger = logging.getLogger(__name__)


class _ProductListScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.products: list[ProductRecord] = []

    def _with_placeholder(self, products: list[ProductRecord]) -> list[ProductRecord]:
        placeholder = self.settings.placeholder_image_url
        return [
            replace(product, product_img=product.product_img or placeholder)
            for product in products
        ]


class MarketplaceScreen(_ProductListScreen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.selected_category = ALL_CATEGORIES

    @property
    def categories(self) -> tuple[str, ...]:
        return CATEGORIES

    def select_category(self, category: str) -> list[ProductRecord]:
        self.selected_category = category
        return self.refresh()

    def refresh(self) -> list[ProductRecord]:
        category = (
            None if self.selected_category == ALL_CATEGORIES else self.selected_category
        )
        try:
            products = self.backend.db.list_products(category=category)
        except BackendError as exc:
            self.fail("Error", "Failed to fetch products.", exc)
            return self.products
        self.products = self._with_placeholder(products)
        logger.info(
            "Fetched %d products (category=%s)",
            len(self.products),
            self.selected_category,
        )
        return self.products


class SearchScreen(_ProductListScreen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.query = ""

    def search(self, query: str) -> list[ProductRecord]:
        self.query = query
        try:
            products = self.backend.db.list_products(name_contains=query)
        except BackendError as exc:
            self.fail("Error", "Failed to fetch products.", exc)
            return self.products
        self.products = self._with_placeholder(products)
        return self.products


class ProductDetailScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.product: Optional[ProductRecord] = None
        self.seller: Optional[UserRecord] = None

    @property
    def is_current_user_seller(self) -> bool:
        return (
            self.product is not None
            and self.current_user_id is not None
            and self.current_user_id == self.product.user_id
        )

    def load(self, product_id: Optional[int]) -> Optional[ProductRecord]:
        if not product_id:
            logger.warning("Product ID is missing")
            return None
        self.loading = True
        try:
            product = self.backend.db.get_product(product_id)
            if product is None:
                raise NotFoundError("products", product_id)
            self.product = product
            seller = self.backend.db.get_user(product.user_id)
            if seller is None:
                raise NotFoundError("users", product.user_id)
            self.seller = seller
        except BackendError as exc:
            self.fail("Error", "Failed to load product.", exc)
        finally:
            self.loading = False
        return self.product
