import json
import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from marketplace.db import InMemoryDbClient, MessageRecord
from marketplace.realtime import (
    ChangeEvent,
    InMemoryRealtimeClient,
    RedisRealtimeClient,
    matches,
    parse_filter,
)
from marketplace.types import ChangeEventType


def message_insert(product_id=1, content="hi"):
    return ChangeEvent(
        table="messages",
        event_type=ChangeEventType.INSERT,
        new={"id": 1, "product_id": product_id, "content": content},
    )


class FilterTests(unittest.TestCase):
    def test_parse_filter(self):
        self.assertEqual(parse_filter("product_id=eq.42"), ("product_id", "42"))
        self.assertIsNone(parse_filter(None))

    def test_parse_filter_rejects_other_operators(self):
        with self.assertRaises(ValueError):
            parse_filter("price=gt.10")
        with self.assertRaises(ValueError):
            parse_filter("product_id")

    def test_matches_table_event_and_filter(self):
        change = message_insert(product_id=7)
        self.assertTrue(matches(change, "messages"))
        self.assertTrue(matches(change, "messages", ChangeEventType.INSERT))
        self.assertFalse(matches(change, "messages", ChangeEventType.DELETE))
        self.assertFalse(matches(change, "products"))
        self.assertTrue(matches(change, "messages", filter="product_id=eq.7"))
        self.assertFalse(matches(change, "messages", filter="product_id=eq.8"))

    def test_delete_filters_on_old_row(self):
        change = ChangeEvent(
            table="products",
            event_type=ChangeEventType.DELETE,
            old={"id": 3, "user_id": "u1"},
        )
        self.assertTrue(matches(change, "products", filter="user_id=eq.u1"))


class InMemoryRealtimeClientTests(unittest.TestCase):
    def test_delivers_matching_changes_until_unsubscribed(self):
        client = InMemoryRealtimeClient()
        received = []
        subscription = client.subscribe(
            "messages",
            received.append,
            event=ChangeEventType.INSERT,
            filter="product_id=eq.1",
        )

        client.publish(message_insert(product_id=1, content="first"))
        client.publish(message_insert(product_id=2, content="other thread"))
        subscription.unsubscribe()
        client.publish(message_insert(product_id=1, content="too late"))

        self.assertEqual([c.new["content"] for c in received], ["first"])
        self.assertEqual(len(client.published), 3)
        self.assertEqual(client.subscriptions, [])


class RedisRealtimeClientTests(unittest.TestCase):
    @patch("marketplace.realtime.redis.Redis.from_url")
    def test_publish_uses_table_channel(self, from_url):
        redis_client = MagicMock()
        from_url.return_value = redis_client
        client = RedisRealtimeClient(url="redis://localhost:6379/0", channel_prefix="rt")

        client.publish(message_insert(product_id=5))

        channel, payload = redis_client.publish.call_args.args
        self.assertEqual(channel, "rt:messages")
        self.assertEqual(json.loads(payload)["new"]["product_id"], 5)

    @patch("marketplace.realtime.redis.Redis.from_url")
    def test_subscribe_dispatches_only_matching_messages(self, from_url):
        pubsub = MagicMock()
        from_url.return_value.pubsub.return_value = pubsub
        client = RedisRealtimeClient(url="redis://localhost:6379/0", channel_prefix="rt")
        received = []

        subscription = client.subscribe(
            "messages", received.append, filter="product_id=eq.5"
        )
        handler = pubsub.subscribe.call_args.kwargs["rt:messages"]
        handler({"data": json.dumps(message_insert(product_id=5).as_dict())})
        handler({"data": json.dumps(message_insert(product_id=6).as_dict())})
        subscription.unsubscribe()

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].event_type, ChangeEventType.INSERT)
        thread = pubsub.run_in_thread.return_value
        thread.stop.assert_called_once()
        thread.join.assert_called_once_with(timeout=1)

    @patch("marketplace.realtime.redis.Redis.from_url")
    def test_publish_reconnects_once(self, from_url):
        first, second = MagicMock(), MagicMock()
        first.publish.side_effect = redis_exceptions.ConnectionError("reset")
        from_url.side_effect = [first, second]
        client = RedisRealtimeClient(url="redis://localhost:6379/0")

        client.publish(message_insert())

        second.publish.assert_called_once()
        self.assertIs(client.client, second)

    @patch("marketplace.realtime.redis.Redis.from_url")
    def test_failed_publish_after_write_is_logged(self, from_url):
        from_url.return_value.publish.side_effect = redis_exceptions.ConnectionError(
            "down"
        )
        db = InMemoryDbClient(
            changes=RedisRealtimeClient(url="redis://localhost:6379/0")
        )

        with self.assertLogs("marketplace.realtime", level="ERROR"):
            message = db.insert_message(
                MessageRecord(
                    sender_id="buyer", receiver_id="seller", product_id=1, content="hi"
                )
            )

        self.assertIsNotNone(message.id)
        self.assertEqual(len(db.list_messages(1)), 1)


if __name__ == "__main__":
    unittest.main()
