"""
Message inbox: every message the user sent or received, grouped by product.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from marketplace.db import MessageRecord
from marketplace.errors import BackendError
from marketplace.screens.base import Screen
from marketplace.screens.chat import ChatScreen

logger = logging.getLogger(__name__)


@dataclass
class InboxMessage:
    record: MessageRecord
    buyer_name: str
    seller_name: str

    @property
    def content(self) -> str:
        return self.record.content


@dataclass
class Conversation:
    product_id: int
    product_name: Optional[str] = None
    product_img: Optional[str] = None
    product_price: Optional[float] = None
    messages: list[InboxMessage] = field(default_factory=list)

    @property
    def latest(self) -> Optional[InboxMessage]:
        # Messages are kept newest first.
        return self.messages[0] if self.messages else None

    @property
    def preview(self) -> str:
        return self.latest.content if self.latest else "No messages yet"


def buyer_and_seller(
    record: MessageRecord, user_id: str, names: dict[str, str]
) -> tuple[str, str]:
    """Name the two sides of a message from the viewing user's perspective."""
    if record.receiver_id == user_id:
        return (
            names.get(record.sender_id) or "Unknown Buyer",
            names.get(record.receiver_id) or "You",
        )
    return (
        names.get(record.receiver_id) or "You",
        names.get(record.sender_id) or "Unknown Seller",
    )


class InboxScreen(Screen):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.conversations: list[Conversation] = []

    def load(self) -> list[Conversation]:
        user_id = self.current_user_id
        if not user_id:
            return self.conversations
        db = self.backend.db
        self.loading = True
        try:
            records = db.list_messages_for_user(user_id)
            participant_ids = {r.sender_id for r in records} | {
                r.receiver_id for r in records
            }
            names = {user.id: user.full_name for user in db.get_users(participant_ids)}

            grouped: dict[int, Conversation] = {}
            for record in records:
                conversation = grouped.get(record.product_id)
                if conversation is None:
                    product = db.get_product(record.product_id)
                    conversation = Conversation(
                        product_id=record.product_id,
                        product_name=product.product_name if product else None,
                        product_img=product.product_img if product else None,
                        product_price=product.price if product else None,
                    )
                    grouped[record.product_id] = conversation
                buyer_name, seller_name = buyer_and_seller(record, user_id, names)
                conversation.messages.append(
                    InboxMessage(
                        record=record, buyer_name=buyer_name, seller_name=seller_name
                    )
                )
            self.conversations = list(grouped.values())
            logger.info("Fetched %d chats", len(self.conversations))
        except BackendError as exc:
            self.fail("Error", "Failed to fetch chats. Please try again later.", exc)
            self.conversations = []
        finally:
            self.loading = False
        return self.conversations

    def open_chat(self, conversation: Conversation) -> ChatScreen:
        latest = conversation.latest
        peer_id = None
        if latest is not None:
            record = latest.record
            peer_id = (
                record.sender_id
                if record.receiver_id == self.current_user_id
                else record.receiver_id
            )
        return ChatScreen(
            self.backend,
            self.session,
            self.alerts,
            self.settings,
            product_id=conversation.product_id,
            peer_id=peer_id,
        )
