"""
Sell and edit product screens.

Photos are uploaded to the product bucket as soon as they are picked; the form
keeps their public URLs and the first one becomes the product's main image.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from marketplace.db import ProductRecord
from marketplace.errors import BackendError
from marketplace.schemas import ProductForm, form_error_from
from marketplace.screens.base import Screen
from marketplace.storage import LocalFile, timestamped_name
from marketplace.types import ProductCondition

logger = logging.getLogger(__name__)


class _ProductFormScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.photos: list[str] = []
        self.is_submitting = False

    def add_photo(self, photo: LocalFile) -> Optional[str]:
        if len(self.photos) >= self.settings.max_product_photos:
            self.alerts.show(
                f"Maximum {self.settings.max_product_photos} photos allowed"
            )
            return None
        bucket = self.settings.product_bucket
        file_name = timestamped_name(photo.name)
        try:
            self.backend.storage.upload(
                bucket, file_name, photo.data, photo.content_type or "image/jpeg"
            )
            url = self.backend.storage.get_public_url(bucket, file_name)
        except BackendError as exc:
            self.fail("Error", "Failed to upload photo. Please try again.", exc)
            return None
        self.photos.append(url)
        return url

    def remove_photo(self, index: int) -> None:
        if 0 <= index < len(self.photos):
            del self.photos[index]

    def _validate(
        self,
        product_name: str,
        product_descrip: str,
        price: str,
        category: str,
        condition: ProductCondition | str,
    ) -> Optional[ProductForm]:
        try:
            return ProductForm(
                product_name=product_name,
                product_descrip=product_descrip,
                price=str(price),
                category=category,
                product_cond=condition,
                photos=list(self.photos),
            )
        except ValidationError as exc:
            error = form_error_from(exc)
            self.alerts.show(error.title, error.message)
            return None


class SellProductScreen(_ProductFormScreen):
    def submit(
        self,
        product_name: str,
        product_descrip: str,
        price: str,
        category: str,
        condition: ProductCondition | str = ProductCondition.NEW,
    ) -> Optional[ProductRecord]:
        if self.is_submitting:
            return None
        self.is_submitting = True
        try:
            form = self._validate(
                product_name, product_descrip, price, category, condition
            )
            if form is None:
                return None
            user_id = self.current_user_id
            if not user_id:
                self.fail("Error", "You must be logged in to sell a product.")
                return None
            logger.info("User ID being used for product submission: %s", user_id)
            try:
                product = self.backend.db.insert_product(
                    ProductRecord(user_id=user_id, **form.as_columns())
                )
            except BackendError as exc:
                self.fail("Error", f"Database insertion error: {exc.message}", exc)
                return None
            self.alerts.show(
                "Success!",
                "Your product has been submitted successfully. Await approval!",
            )
            return product
        finally:
            self.is_submitting = False


class EditProductScreen(_ProductFormScreen):
    def __init__(self, *args, product: Optional[ProductRecord] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.product = product
        if product is None:
            self.alerts.show("Error", "No product selected.")
        elif product.product_img:
            self.photos = [product.product_img]

    def submit(
        self,
        product_name: str,
        product_descrip: str,
        price: str,
        category: str,
        condition: ProductCondition | str = ProductCondition.NEW,
    ) -> Optional[ProductRecord]:
        if self.is_submitting or self.product is None:
            return None
        self.is_submitting = True
        try:
            form = self._validate(
                product_name, product_descrip, price, category, condition
            )
            if form is None:
                return None
            db = self.backend.db
            try:
                existing = db.get_product(self.product.id)
                if existing is None:
                    self.fail("Error", "Product not found.")
                    return None
                # Client-side check only; the database does not enforce it.
                if existing.user_id != self.current_user_id:
                    self.fail(
                        "Error", "You are not authorized to update this product."
                    )
                    return None
                updated = db.update_product(self.product.id, form.as_columns())
            except BackendError as exc:
                self.fail("Error", f"Update failed: {exc.message}", exc)
                return None
            if updated is None:
                self.fail("Error", "Product not found.")
                return None
            self.product = updated
            self.alerts.show("Success", "Product updated successfully!")
            return updated
        finally:
            self.is_submitting = False
