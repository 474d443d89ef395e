import logging

from rollprogress.events import EventBus


def test_publish_reaches_subscribers_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe("ping", lambda e: seen.append(("a", e.payload)))
    bus.subscribe("ping", lambda e: seen.append(("b", e.payload)))
    bus.publish("ping", 1)
    assert seen == [("a", 1), ("b", 1)]


def test_double_subscription_returns_same_handle():
    bus = EventBus()
    calls = []

    def handler(event):
        calls.append(event.name)

    first = bus.subscribe("ping", handler)
    second = bus.subscribe("ping", handler)
    assert first is second
    assert bus.subscriber_count("ping") == 1

    bus.publish("ping")
    assert calls == ["ping"]


def test_unsubscribe_is_idempotent():
    bus = EventBus()
    calls = []
    sub = bus.subscribe("ping", calls.append)
    sub.unsubscribe()
    sub.unsubscribe()
    assert not sub.active
    assert not bus.is_subscribed("ping", calls.append)
    bus.publish("ping")
    assert calls == []


def test_resubscribe_after_dispose_creates_new_handle():
    bus = EventBus()
    calls = []
    old = bus.subscribe("ping", calls.append)
    old.unsubscribe()
    new = bus.subscribe("ping", calls.append)
    assert new is not old
    # Disposing the stale handle must not remove the new registration
    old.unsubscribe()
    bus.publish("ping", 5)
    assert [e.payload for e in calls] == [5]


def test_subscription_context_manager():
    bus = EventBus()
    calls = []
    with bus.subscribe("ping", calls.append):
        bus.publish("ping")
    bus.publish("ping")
    assert len(calls) == 1


def test_handler_exception_is_logged_and_isolated(caplog):
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe("ping", broken)
    bus.subscribe("ping", lambda e: seen.append(e.payload))
    with caplog.at_level(logging.ERROR):
        bus.publish("ping", "x")
    assert seen == ["x"]
    assert "Unhandled exception in event subscriber" in caplog.text


def test_handler_detached_during_publish_is_skipped():
    bus = EventBus()
    seen = []
    subs = {}

    def first(event):
        subs["second"].unsubscribe()

    def second(event):
        seen.append("second")

    bus.subscribe("ping", first)
    subs["second"] = bus.subscribe("ping", second)
    bus.publish("ping")
    assert seen == []
