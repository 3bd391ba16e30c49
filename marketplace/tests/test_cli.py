import io
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from marketplace import cli
from marketplace.tests.testing_utils import (
    PASSWORD,
    add_product,
    create_account,
    make_backend,
    make_settings,
)


class CliTests(unittest.TestCase):
    def setUp(self):
        self.backend = make_backend()
        self.seller = create_account(self.backend, "seller@school.edu", "Sam Seller")
        self.buyer = create_account(self.backend, "buyer@school.edu", "Bea Buyer")
        self.bike = add_product(self.backend, self.seller, "Road Bike", category="Sports")
        patchers = [
            patch("marketplace.cli.get_backend", return_value=self.backend),
            patch("marketplace.screens.base.get_settings", return_value=make_settings()),
        ]
        for patcher in patchers:
            patcher.start()
            self.addCleanup(patcher.stop)

    def _run(self, *argv, stdin=None):
        out = io.StringIO()
        with redirect_stdout(out):
            if stdin is None:
                code = cli.main(list(argv))
            else:
                with patch("marketplace.cli.sys.stdin", io.StringIO(stdin)):
                    code = cli.main(list(argv))
        return code, out.getvalue()

    def _as(self, user_email, *argv, **kwargs):
        return self._run("--email", user_email, "--password", PASSWORD, *argv, **kwargs)

    def test_products_by_category(self):
        code, out = self._run("products", "--category", "Sports")
        self.assertEqual(code, 0)
        self.assertIn("Road Bike", out)

        code, out = self._run("products", "--category", "Food")
        self.assertEqual(out.strip(), "No products found.")

    def test_show_product(self):
        code, out = self._run("show", str(self.bike.id))
        self.assertEqual(code, 0)
        self.assertIn("Seller: Sam Seller", out)

    def test_sell_requires_login(self):
        code, _ = self._run(
            "sell", "--name", "Lamp", "--price", "10", "--category", "Home"
        )
        self.assertEqual(code, 1)

    def test_sell_with_photo(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "lamp.jpg")
            with open(path, "wb") as f:
                f.write(b"\xff\xd8\xff")
            code, out = self._as(
                "seller@school.edu",
                "sell",
                "--name",
                "Lamp",
                "--price",
                "25",
                "--category",
                "Home",
                "--photo",
                path,
            )
        self.assertEqual(code, 0)
        self.assertIn("Listed product #", out)
        names = [p.product_name for p in self.backend.db.list_products(owner_id=self.seller.id)]
        self.assertEqual(names, ["Road Bike", "Lamp"])

    def test_chat_sends_stdin_lines(self):
        code, out = self._as(
            "buyer@school.edu", "chat", str(self.bike.id), stdin="Is it available?\n\n"
        )
        self.assertEqual(code, 0)
        self.assertIn("seller: Sam Seller", out)
        stored = self.backend.db.list_messages(self.bike.id)
        self.assertEqual([m.content for m in stored], ["Is it available?"])
        self.assertEqual(self.backend.realtime.subscriptions, [])

    def test_inbox_for_seller(self):
        self._as("buyer@school.edu", "chat", str(self.bike.id), stdin="Hi\n")
        code, out = self._as("seller@school.edu", "inbox")
        self.assertEqual(code, 0)
        self.assertIn("Road Bike", out)
        self.assertIn("Bea Buyer: Hi", out)


if __name__ == "__main__":
    unittest.main()
