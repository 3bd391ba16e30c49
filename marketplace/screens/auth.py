"""
Login and registration screens.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from marketplace.db import UserRecord
from marketplace.errors import BackendError
from marketplace.schemas import RegistrationForm, form_error_from
from marketplace.screens.base import Screen
from marketplace.storage import LocalFile

logger = logging.getLogger(__name__)

LOGIN_MESSAGES = {
    "invalid_credentials": "Invalid credentials. Please try again.",
    "invalid_password": "Invalid password. Please check and retry.",
}


class LoginScreen(Screen):
    def login(self, email: str, password: str) -> bool:
        response = self.session.sign_in(email, password)
        if response.error is not None:
            message = LOGIN_MESSAGES.get(
                response.error.code or "", response.error.message
            )
            self.alerts.show("Login Failed", message)
            return False
        return True


class RegisterScreen(Screen):
    """
    Sign up, upload the certificate of registration (COR), save the profile
    row, then sign out so the user verifies their email before logging in.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.cor_file: Optional[LocalFile] = None

    def select_cor(self, cor_file: Optional[LocalFile]) -> None:
        if cor_file is None:
            self.alerts.show("Cancelled", "You did not select any file.")
            return
        self.cor_file = cor_file
        self.alerts.show(
            "File Selected", f"COR file selected successfully:\n{cor_file.name}"
        )

    def sign_up(
        self,
        full_name: str,
        email: str,
        student_id: str,
        password: str,
        confirm_password: str,
    ) -> Optional[UserRecord]:
        try:
            form = RegistrationForm(
                full_name=full_name,
                email=email,
                student_id=student_id,
                password=password,
                confirm_password=confirm_password,
                has_cor=self.cor_file is not None,
            )
        except ValidationError as exc:
            error = form_error_from(exc)
            self.alerts.show(error.title, error.message)
            return None

        auth = self.backend.auth
        self.loading = True
        try:
            try:
                auth_user = auth.sign_up(form.email, form.password)
            except BackendError as exc:
                self.fail("Error", "Failed to sign up.", exc)
                return None

            file_name = f"{form.student_id.strip()}_cor.pdf"
            bucket = self.settings.cor_bucket
            try:
                self.backend.storage.upload(
                    bucket, file_name, self.cor_file.data, "application/pdf"
                )
            except BackendError as exc:
                self.fail("Error", "Failed to upload COR.", exc)
                return None
            cor_url = self.backend.storage.get_public_url(bucket, file_name)

            user = UserRecord(
                id=auth_user.id,
                full_name=form.full_name,
                email=form.email,
                student_id=form.student_number,
                cor_url=cor_url,
            )
            try:
                self.backend.db.insert_user(user)
            except BackendError as exc:
                self.fail("Error", "Failed to save user data.", exc)
                return None

            self.session.sign_out()
            logger.info("Registered user %s", user.id)
            self.alerts.show(
                "Registration successful!", "Check email for verification"
            )
            return user
        finally:
            self.loading = False
