"""
Chat screen for one product thread.

Messages are fetched in full (oldest first), new rows arrive through the
realtime feed, and sending appends the local copy before the insert goes out.
The realtime echo of a sent message is appended as well; nothing deduplicates
the two copies.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from marketplace.db import MessageRecord, ProductRecord
from marketplace.errors import BackendError, NotFoundError
from marketplace.realtime import ChangeEvent, Subscription
from marketplace.screens.base import Screen
from marketplace.types import MESSAGES_TABLE, ChangeEventType

logger = logging.getLogger(__name__)

UNKNOWN_SELLER = "Unknown Seller"


@dataclass
class ChatMessage:
    sender_id: str
    receiver_id: str
    product_id: int
    content: str
    id: Optional[int] = None
    created_at: float = field(default_factory=lambda: time.time())
    sender_name: Optional[str] = None

    @classmethod
    def from_record(
        cls, record: MessageRecord, sender_name: Optional[str] = None
    ) -> "ChatMessage":
        return cls(
            id=record.id,
            sender_id=record.sender_id,
            receiver_id=record.receiver_id,
            product_id=record.product_id,
            content=record.content,
            created_at=record.created_at,
            sender_name=sender_name,
        )


class ChatScreen(Screen):
    def __init__(self, *args, product_id: int, peer_id: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.product_id = product_id
        self.peer_id = peer_id
        self.product: Optional[ProductRecord] = None
        self.seller_name: Optional[str] = None
        self.messages: list[ChatMessage] = []
        self.input = ""
        self._names: dict[str, str] = {}
        self._subscription: Optional[Subscription] = None

    def __enter__(self) -> "ChatScreen":
        self.load()
        self.subscribe()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def receiver_id(self) -> Optional[str]:
        """The product owner, or the other participant when we are the owner."""
        if self.product is None:
            return None
        if self.current_user_id != self.product.user_id:
            return self.product.user_id
        if self.peer_id:
            return self.peer_id
        for message in reversed(self.messages):
            if message.sender_id != self.current_user_id:
                return message.sender_id
        return None

    def is_own(self, message: ChatMessage) -> bool:
        return message.sender_id == self.current_user_id

    def display_name(self, message: ChatMessage) -> str:
        if self.is_own(message):
            return "You"
        return message.sender_name or "Unknown"

    def load(self) -> list[ChatMessage]:
        db = self.backend.db
        self.loading = True
        try:
            product = db.get_product(self.product_id)
            if product is None:
                raise NotFoundError("products", self.product_id)
            self.product = product
            seller = db.get_user(product.user_id)
            self.seller_name = (seller.full_name if seller else None) or UNKNOWN_SELLER
            if seller is not None:
                self._names[seller.id] = seller.full_name

            records = db.list_messages(
                self.product_id, participant_id=self.current_user_id
            )
            sender_ids = {record.sender_id for record in records}
            self._names.update(
                {user.id: user.full_name for user in db.get_users(sender_ids)}
            )
            self.messages = [
                ChatMessage.from_record(record, self._names.get(record.sender_id))
                for record in records
            ]
        except BackendError as exc:
            self.fail("Error", "Failed to fetch seller or messages.", exc)
        finally:
            self.loading = False
        return self.messages

    def subscribe(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.backend.realtime.subscribe(
            MESSAGES_TABLE,
            self._on_insert,
            event=ChangeEventType.INSERT,
            filter=f"product_id=eq.{self.product_id}",
        )

    def _on_insert(self, change: ChangeEvent) -> None:
        record = MessageRecord.from_dict(change.new)
        # Same scope as load(): other buyers' threads on this product are skipped.
        if self.current_user_id not in (record.sender_id, record.receiver_id):
            return
        self.messages.append(
            ChatMessage.from_record(record, self._names.get(record.sender_id))
        )

    def send(self) -> bool:
        content = self.input
        sender_id = self.current_user_id
        receiver_id = self.receiver_id
        if not content.strip() or not receiver_id or not sender_id:
            return False

        self.messages.append(
            ChatMessage(
                sender_id=sender_id,
                receiver_id=receiver_id,
                product_id=self.product_id,
                content=content,
            )
        )
        try:
            self.backend.db.insert_message(
                MessageRecord(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    product_id=self.product_id,
                    content=content,
                )
            )
        except BackendError as exc:
            self.fail("Error", "Failed to send message.", exc)
            return False
        self.input = ""
        return True

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
