import unittest
from unittest.mock import patch

from marketplace.errors import DatabaseError
from marketplace.screens import (
    EditProfileScreen,
    MyProfileScreen,
    SellerProfileScreen,
    SettingsScreen,
)
from marketplace.session import AuthStateObserver
from marketplace.tests.testing_utils import (
    add_product,
    create_account,
    make_backend,
    observer_for,
    photo,
    screen_args,
    signed_in,
)


class ProfileScreensTests(unittest.TestCase):
    def setUp(self):
        self.backend = make_backend()
        self.user = create_account(self.backend, "ana@school.edu", "Ana Cruz")
        self.other = create_account(self.backend, "sam@school.edu", "Sam")
        add_product(self.backend, self.user, "Lamp")
        add_product(self.backend, self.other, "Bike")
        self.args, self.alerts = screen_args(
            self.backend, observer_for(self.backend, self.user)
        )

    def test_my_profile_lists_own_products(self):
        screen = MyProfileScreen(*self.args)
        user = screen.load()
        self.assertEqual(user.full_name, "Ana Cruz")
        self.assertEqual([p.product_name for p in screen.listings], ["Lamp"])

    def test_my_profile_requires_login(self):
        args, alerts = screen_args(
            self.backend, AuthStateObserver(self.backend.auth).start()
        )
        self.assertIsNone(MyProfileScreen(*args).load())
        self.assertEqual(alerts.last.message, "User not logged in")

    def test_seller_profile(self):
        screen = SellerProfileScreen(*self.args)
        self.assertEqual(screen.load(self.other.id).full_name, "Sam")
        self.assertEqual([p.product_name for p in screen.listings], ["Bike"])

        self.assertIsNone(SellerProfileScreen(*self.args).load("missing"))
        self.assertEqual(self.alerts.last.message, "Failed to fetch profile data.")

    def test_edit_profile_requires_image(self):
        screen = EditProfileScreen(*self.args)
        screen.load()
        self.assertIsNone(screen.submit("Ana C.", "Hi"))
        self.assertEqual(self.alerts.last.title, "Incomplete Information")

    def test_edit_profile_uploads_picked_image(self):
        screen = EditProfileScreen(*self.args)
        screen.load()
        screen.pick_image(photo("me.jpg"))

        user = screen.submit("Ana C.", "Selling my dorm stuff")

        self.assertEqual(user.full_name, "Ana C.")
        self.assertEqual(user.bio, "Selling my dorm stuff")
        self.assertIn("/profile_bucket/", user.profile_img)
        self.assertTrue(user.profile_img.endswith("_me.jpg"))
        self.assertIsNone(screen.picked_image)
        self.assertEqual(self.backend.db.get_user(self.user.id).full_name, "Ana C.")
        self.assertEqual(self.alerts.last.message, "Your profile has been updated!")

    def test_edit_profile_keeps_existing_image(self):
        self.backend.db.upsert_user(
            {"id": self.user.id, "profile_img": "https://example.test/old.jpg"}
        )
        screen = EditProfileScreen(*self.args)
        screen.load()
        user = screen.submit("Ana", None)
        self.assertEqual(user.profile_img, "https://example.test/old.jpg")
        self.assertEqual(self.backend.storage.stored_objects, {})

    def test_edit_profile_save_failure(self):
        screen = EditProfileScreen(*self.args)
        screen.load()
        screen.pick_image(photo())
        with patch.object(
            self.backend.db, "upsert_user", side_effect=DatabaseError("denied")
        ):
            self.assertIsNone(screen.submit("Ana", None))
        self.assertEqual(self.alerts.last.message, "denied")
        self.assertFalse(screen.is_submitting)


class SettingsScreenTests(unittest.TestCase):
    def setUp(self):
        self.backend = make_backend()
        self.user = create_account(self.backend, "ana@school.edu", "")
        self.session = signed_in(self.backend, "ana@school.edu")
        self.args, self.alerts = screen_args(self.backend, self.session)

    def test_unnamed_user_default(self):
        screen = SettingsScreen(*self.args)
        screen.load()
        self.assertEqual(screen.full_name, "Unnamed User")
        self.assertIsNone(screen.profile_image)

    def test_fetch_failure(self):
        screen = SettingsScreen(*self.args)
        with patch.object(
            self.backend.db, "get_user", side_effect=DatabaseError("offline")
        ):
            screen.load()
        self.assertEqual(self.alerts.last.message, "Failed to fetch user data.")

    def test_logout_clears_session(self):
        screen = SettingsScreen(*self.args)
        screen.logout()
        self.assertIsNone(self.session.user)
        self.assertIsNone(self.backend.auth.get_session())
        self.assertFalse(screen.loading)


if __name__ == "__main__":
    unittest.main()
