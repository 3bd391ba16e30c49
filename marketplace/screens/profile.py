"""
Profile, seller profile, profile editing and settings screens.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from marketplace.db import ProductRecord, UserRecord
from marketplace.errors import BackendError, NotFoundError
from marketplace.schemas import ProfileForm, form_error_from
from marketplace.screens.base import Screen
from marketplace.storage import LocalFile, timestamped_name

logger = logging.getLogger(__name__)

UNNAMED_USER = "Unnamed User"


class _ProfileScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user: Optional[UserRecord] = None
        self.listings: list[ProductRecord] = []

    def _load_profile(self, user_id: str) -> Optional[UserRecord]:
        db = self.backend.db
        self.loading = True
        try:
            user = db.get_user(user_id)
            if user is None:
                raise NotFoundError("users", user_id)
            self.user = user
            self.listings = db.list_products(owner_id=user_id)
        except BackendError as exc:
            self.fail("Error", "Failed to fetch profile data.", exc)
        finally:
            self.loading = False
        return self.user


class MyProfileScreen(_ProfileScreen):
    def load(self) -> Optional[UserRecord]:
        user_id = self.current_user_id
        if not user_id:
            self.fail("Error", "User not logged in")
            return None
        return self._load_profile(user_id)

    def delete_product(self, product_id: int) -> bool:
        try:
            product = next((p for p in self.listings if p.id == product_id), None)
            if product is None:
                product = self.backend.db.get_product(product_id)
            # Client-side check only; the database does not enforce it.
            if product is None or product.user_id != self.current_user_id:
                self.fail("Error", "You can only delete your own products.")
                return False
            deleted = self.backend.db.delete_product(product_id)
        except BackendError as exc:
            self.fail("Error", "Failed to delete the product.", exc)
            return False
        self.listings = [p for p in self.listings if p.id != product_id]
        if not deleted:
            self.fail("Error", "Failed to delete the product.")
            return False
        self.alerts.show("Success", "Product deleted successfully.")
        return True


class SellerProfileScreen(_ProfileScreen):
    def load(self, user_id: str) -> Optional[UserRecord]:
        return self._load_profile(user_id)


class EditProfileScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.full_name = ""
        self.bio: Optional[str] = None
        self.profile_img: Optional[str] = None
        self.picked_image: Optional[LocalFile] = None
        self.is_submitting = False

    def load(self) -> Optional[UserRecord]:
        user_id = self.current_user_id
        try:
            user = self.backend.db.get_user(user_id) if user_id else None
            if user is None:
                raise NotFoundError("users", user_id)
        except BackendError as exc:
            self.fail("Error", "Failed to fetch profile data.", exc)
            return None
        self.full_name = user.full_name
        self.bio = user.bio
        self.profile_img = user.profile_img
        return user

    def pick_image(self, image: LocalFile) -> None:
        self.picked_image = image

    def _upload_picked_image(self) -> str:
        bucket = self.settings.profile_bucket
        file_name = timestamped_name(self.picked_image.name)
        self.backend.storage.upload(
            bucket,
            file_name,
            self.picked_image.data,
            self.picked_image.content_type or "image/jpeg",
        )
        return self.backend.storage.get_public_url(bucket, file_name)

    def submit(self, full_name: str, bio: Optional[str] = None) -> Optional[UserRecord]:
        if self.is_submitting:
            return None
        self.is_submitting = True
        try:
            try:
                form = ProfileForm(
                    full_name=full_name,
                    bio=bio,
                    has_image=bool(self.picked_image or self.profile_img),
                )
            except ValidationError as exc:
                error = form_error_from(exc)
                self.alerts.show(error.title, error.message)
                return None
            user_id = self.current_user_id
            if not user_id:
                self.fail("Error", "User not logged in")
                return None
            try:
                profile_img = (
                    self._upload_picked_image()
                    if self.picked_image
                    else self.profile_img
                )
                user = self.backend.db.upsert_user(
                    {
                        "id": user_id,
                        "full_name": form.full_name,
                        "bio": form.bio,
                        "profile_img": profile_img,
                    }
                )
            except BackendError as exc:
                self.fail("Error", exc.message or "Failed to update profile.", exc)
                return None
            self.full_name = user.full_name
            self.bio = user.bio
            self.profile_img = user.profile_img
            self.picked_image = None
            self.alerts.show("Success", "Your profile has been updated!")
            return user
        finally:
            self.is_submitting = False


class SettingsScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.full_name = ""
        self.profile_image: Optional[str] = None

    def load(self) -> None:
        user_id = self.current_user_id
        if not user_id:
            logger.error("No user is logged in.")
            return
        try:
            user = self.backend.db.get_user(user_id)
        except BackendError as exc:
            self.fail("Error", "Failed to fetch user data.", exc)
            return
        self.full_name = (user.full_name if user else "") or UNNAMED_USER
        self.profile_image = user.profile_img if user else None

    def logout(self) -> None:
        self.loading = True
        try:
            self.session.sign_out()
        finally:
            self.loading = False
