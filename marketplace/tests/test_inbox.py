import unittest
from unittest.mock import patch

from marketplace.db import MessageRecord
from marketplace.errors import DatabaseError
from marketplace.screens import InboxScreen
from marketplace.screens.inbox import Conversation, buyer_and_seller
from marketplace.tests.testing_utils import (
    add_product,
    create_account,
    make_backend,
    observer_for,
    screen_args,
)


class InboxScreenTests(unittest.TestCase):
    def setUp(self):
        self.backend = make_backend()
        self.seller = create_account(self.backend, "seller@school.edu", "Sam Seller")
        self.buyer = create_account(self.backend, "buyer@school.edu", "Bea Buyer")
        self.bike = add_product(self.backend, self.seller, "Bike", price=800)
        self.lamp = add_product(self.backend, self.seller, "Lamp", price=40)
        args, self.alerts = screen_args(
            self.backend, observer_for(self.backend, self.seller)
        )
        self.screen = InboxScreen(*args)

    def _message(self, sender, receiver, product, content, created_at):
        self.backend.db.insert_message(
            MessageRecord(
                sender_id=sender.id,
                receiver_id=receiver.id,
                product_id=product.id,
                content=content,
                created_at=created_at,
            )
        )

    def test_groups_by_product_newest_first(self):
        self._message(self.buyer, self.seller, self.bike, "Bike still there?", 1.0)
        self._message(self.buyer, self.seller, self.lamp, "Lamp price?", 2.0)
        self._message(self.seller, self.buyer, self.bike, "Yes", 3.0)

        conversations = self.screen.load()

        self.assertEqual(
            [c.product_name for c in conversations], ["Bike", "Lamp"]
        )
        bike = conversations[0]
        self.assertEqual(bike.product_price, 800)
        self.assertEqual(bike.preview, "Yes")
        self.assertEqual(
            [m.content for m in bike.messages], ["Yes", "Bike still there?"]
        )
        incoming = bike.messages[1]
        self.assertEqual(incoming.buyer_name, "Bea Buyer")
        self.assertEqual(incoming.seller_name, "Sam Seller")

    def test_open_chat_targets_the_other_participant(self):
        self._message(self.buyer, self.seller, self.bike, "Hi", 1.0)
        conversation = self.screen.load()[0]

        chat = self.screen.open_chat(conversation)

        self.assertEqual(chat.product_id, self.bike.id)
        self.assertEqual(chat.peer_id, self.buyer.id)

    def test_empty_inbox_and_failures(self):
        self.assertEqual(self.screen.load(), [])
        self.assertEqual(Conversation(product_id=1).preview, "No messages yet")

        with patch.object(
            self.backend.db,
            "list_messages_for_user",
            side_effect=DatabaseError("offline"),
        ):
            self.assertEqual(self.screen.load(), [])
        self.assertEqual(
            self.alerts.last.message, "Failed to fetch chats. Please try again later."
        )

    def test_buyer_and_seller_fallback_names(self):
        record = MessageRecord(
            sender_id="ghost", receiver_id="me", product_id=1, content="hey"
        )
        self.assertEqual(
            buyer_and_seller(record, "me", {}), ("Unknown Buyer", "You")
        )
        outgoing = MessageRecord(
            sender_id="me", receiver_id="ghost", product_id=1, content="hey"
        )
        self.assertEqual(
            buyer_and_seller(outgoing, "me", {"me": "Me"}), ("You", "Me")
        )


if __name__ == "__main__":
    unittest.main()
