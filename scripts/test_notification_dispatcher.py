import unittest

from fakes import FakeClock, RecordingPushClient, seeded_store

from medrecords.core.errors import DeliveryError, MissingTokenError, ValidationError
from medrecords.services.container import build_services
from medrecords.services.notification_dispatcher import (
    DELIVERED_COLLECTION,
    FAILED_COLLECTION,
    DirectDispatcher,
    QueuedDispatcher,
)
from medrecords.services.push_client import TokenResolver


def make_notification(user_id="P1", **extra):
    payload = {
        "userId": user_id,
        "type": "DIAGNOSIS_UPDATE",
        "title": "Diagnosis Update",
        "body": "Your diagnosis changed",
        "data": {"recordId": "R1"},
    }
    payload.update(extra)
    return payload


class TestQueuedDispatcher(unittest.TestCase):
    def setUp(self):
        self.store = seeded_store()
        self.clock = FakeClock()

    def make_dispatcher(self, push, **kwargs):
        kwargs.setdefault("background", False)
        return QueuedDispatcher(
            self.store, push, TokenResolver(self.store), clock=self.clock, **kwargs
        )

    def test_always_failing_delivery_stops_at_max_retries(self):
        push = RecordingPushClient(fail_with=DeliveryError("unavailable", code="UNAVAILABLE"))
        dispatcher = self.make_dispatcher(push, max_retries=3, retry_delay=1.0)
        dispatcher.enqueue(make_notification())

        for _ in range(10):
            dispatcher.process_queue()
            self.clock.advance(5)

        self.assertEqual(push.attempts, 3)
        self.assertEqual(dispatcher.pending(), [])

        failed = self.store.query(FAILED_COLLECTION)
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["status"], "failed")
        self.assertEqual(failed[0]["retries"], 3)
        self.assertEqual(failed[0]["error"], {"message": "unavailable", "code": "UNAVAILABLE"})
        self.assertEqual(self.store.query(DELIVERED_COLLECTION), [])

    def test_missing_token_fails_immediately(self):
        push = RecordingPushClient()
        dispatcher = self.make_dispatcher(push)
        dispatcher.enqueue(make_notification(user_id="P2"))

        self.assertEqual(dispatcher.process_queue(), 1)

        self.assertEqual(push.attempts, 0)
        self.assertEqual(dispatcher.pending(), [])
        failed = self.store.query(FAILED_COLLECTION)
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["retries"], 0)
        self.assertEqual(failed[0]["error"]["code"], "MISSING_TOKEN")

    def test_non_retryable_provider_error_is_not_retried(self):
        push = RecordingPushClient(
            fail_with=DeliveryError("gone", code="UNREGISTERED", retryable=False)
        )
        dispatcher = self.make_dispatcher(push)
        dispatcher.enqueue(make_notification())
        dispatcher.process_queue()

        self.assertEqual(push.attempts, 1)
        self.assertEqual(self.store.query(FAILED_COLLECTION)[0]["retries"], 0)

    def test_successful_deliveries_keep_fifo_order(self):
        for i in range(5):
            self.store.set("users", f"U{i}", {"fcmToken": f"token-U{i}"})
        push = RecordingPushClient()
        dispatcher = self.make_dispatcher(push)

        for i in range(5):
            dispatcher.enqueue(make_notification(user_id=f"U{i}"))
            self.clock.advance(0.01)

        self.assertEqual(dispatcher.process_queue(), 5)

        self.assertEqual(dispatcher.pending(), [])
        self.assertEqual([m["token"] for m in push.sent], [f"token-U{i}" for i in range(5)])
        delivered = self.store.query(DELIVERED_COLLECTION)
        self.assertEqual(len(delivered), 5)
        self.assertTrue(all(d["status"] == "delivered" for d in delivered))
        ordered = sorted(delivered, key=lambda d: d["timestamp"])
        self.assertEqual([d["userId"] for d in ordered], [f"U{i}" for i in range(5)])

    def test_delivered_log_is_keyed_by_timestamp_and_user(self):
        dispatcher = self.make_dispatcher(RecordingPushClient())
        dispatcher.enqueue(make_notification())
        dispatcher.process_queue()

        key = f"{int(self.clock.now * 1000)}_P1_0"
        self.assertEqual(self.store.get(DELIVERED_COLLECTION, key)["userId"], "P1")

    def test_same_millisecond_notifications_keep_separate_records(self):
        dispatcher = self.make_dispatcher(RecordingPushClient())
        dispatcher.enqueue(make_notification())
        dispatcher.enqueue(make_notification(body="Second update"))

        self.assertEqual(dispatcher.process_queue(), 2)

        delivered = self.store.query(DELIVERED_COLLECTION)
        self.assertEqual(len(delivered), 2)
        self.assertEqual(
            sorted(d["body"] for d in delivered), ["Second update", "Your diagnosis changed"]
        )

    def test_grant_and_revoke_in_one_instant_are_both_logged(self):
        services = build_services(
            self.store, RecordingPushClient(), clock=self.clock, background=False
        )
        services.registry.grant_access("P1", "D1")
        services.registry.revoke_access("P1", "D1")

        self.assertEqual(services.dispatcher.process_queue(), 2)
        types = sorted(d["type"] for d in self.store.query(DELIVERED_COLLECTION))
        self.assertEqual(types, ["PERMISSION_GRANTED", "PERMISSION_REVOKED"])

    def test_entries_wait_out_their_backoff(self):
        push = RecordingPushClient(fail_with=DeliveryError("flaky"), fail_times=1)
        dispatcher = self.make_dispatcher(push, retry_delay=1.0)
        dispatcher.enqueue(make_notification())

        self.assertEqual(dispatcher.process_queue(), 1)
        pending = dispatcher.pending()
        self.assertEqual(len(pending), 1)
        self.assertEqual(pending[0].retries, 1)
        self.assertEqual(pending[0].nextRetry, self.clock.now + 1.0)

        # Still inside the backoff window: skipped, not popped
        self.clock.advance(0.5)
        self.assertEqual(dispatcher.process_queue(), 0)
        self.assertEqual(push.attempts, 1)
        self.assertEqual(len(dispatcher.pending()), 1)

        self.clock.advance(0.5)
        self.assertEqual(dispatcher.process_queue(), 1)
        self.assertEqual(push.attempts, 2)
        self.assertEqual(dispatcher.pending(), [])
        self.assertEqual(len(self.store.query(DELIVERED_COLLECTION)), 1)

    def test_ready_entries_are_not_blocked_by_backing_off_ones(self):
        self.store.set("users", "U1", {"fcmToken": "token-U1"})
        push = RecordingPushClient(fail_with=DeliveryError("flaky"), fail_times=1)
        dispatcher = self.make_dispatcher(push, retry_delay=10.0)
        dispatcher.enqueue(make_notification(user_id="P1"))
        dispatcher.enqueue(make_notification(user_id="U1"))

        self.assertEqual(dispatcher.process_queue(), 2)
        self.assertEqual([m["token"] for m in push.sent], ["token-U1"])
        self.assertEqual([n.userId for n in dispatcher.pending()], ["P1"])

    def test_only_one_drain_runs_at_a_time(self):
        results = []

        class ReentrantPush(RecordingPushClient):
            def send(inner, *args, **kwargs):
                results.append(dispatcher.process_queue())
                return super().send(*args, **kwargs)

        dispatcher = self.make_dispatcher(ReentrantPush())
        dispatcher.enqueue(make_notification())
        dispatcher.process_queue()

        self.assertEqual(results, [0])

    def test_entry_added_as_a_drain_finishes_is_not_stranded(self):
        push = RecordingPushClient()

        class LateArrival(QueuedDispatcher):
            added = False

            def _take_ready(inner):
                n = super()._take_ready()
                if n is None and not inner.added:
                    # Arrives after the last empty look, before the flag is cleared
                    inner.added = True
                    inner.enqueue(make_notification(user_id="D1"))
                return n

        dispatcher = LateArrival(
            self.store, push, TokenResolver(self.store), clock=self.clock, background=False
        )
        dispatcher.enqueue(make_notification())

        self.assertEqual(dispatcher.process_queue(), 2)
        self.assertEqual([m["token"] for m in push.sent], ["token-P1", "token-D1"])
        self.assertEqual(dispatcher.pending(), [])

    def test_malformed_notification_is_rejected(self):
        dispatcher = self.make_dispatcher(RecordingPushClient())
        with self.assertRaises(ValidationError):
            dispatcher.enqueue({"userId": "", "type": "NOT_A_TYPE", "title": "x"})
        self.assertEqual(dispatcher.pending(), [])

    def test_enqueue_resets_queue_bookkeeping(self):
        dispatcher = self.make_dispatcher(RecordingPushClient())
        dispatcher.enqueue(make_notification(retries=2, nextRetry=1.0))

        pending = dispatcher.pending()[0]
        self.assertEqual(pending.retries, 0)
        self.assertIsNone(pending.nextRetry)
        self.assertEqual(pending.timestamp, self.clock.now)

    def test_background_drain_delivers_without_caller_draining(self):
        push = RecordingPushClient()
        dispatcher = QueuedDispatcher(
            self.store, push, TokenResolver(self.store), background=True
        )
        dispatcher.enqueue(make_notification())

        self.assertTrue(push.delivered.wait(5))
        self.assertEqual(push.sent[0]["token"], "token-P1")


class TestDirectDispatcher(unittest.TestCase):
    def test_sends_once(self):
        store = seeded_store()
        push = RecordingPushClient()
        DirectDispatcher(push, TokenResolver(store)).send(make_notification(user_id="D1"))
        self.assertEqual(push.sent[0]["token"], "token-D1")
        self.assertEqual(push.sent[0]["data"], {"recordId": "R1"})

    def test_missing_token_raises(self):
        store = seeded_store()
        with self.assertRaises(MissingTokenError):
            DirectDispatcher(RecordingPushClient(), TokenResolver(store)).send(
                make_notification(user_id="P2")
            )


if __name__ == "__main__":
    unittest.main()
