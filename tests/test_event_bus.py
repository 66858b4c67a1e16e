"""EventBus tests"""

from companion_engine.core.event_bus import MAX_DEPTH, EventBus, GameEvent


class TestSubscribeEmit:
    def test_basic_emit(self):
        bus = EventBus()
        received = []
        bus.subscribe("companion_updated", lambda e: received.append(e))
        bus.emit(
            GameEvent(event_type="companion_updated", data={"companion_id": "c1"}, source="test")
        )
        assert len(received) == 1
        assert received[0].data["companion_id"] == "c1"

    def test_multiple_handlers_in_order(self):
        bus = EventBus()
        results = []
        bus.subscribe("evt", lambda e: results.append("a"))
        bus.subscribe("evt", lambda e: results.append("b"))
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))
        assert results == ["a", "b"]

    def test_no_handlers(self):
        """No subscribers: ignored without error"""
        bus = EventBus()
        bus.emit(GameEvent(event_type="no_one_listens", data={}, source="test"))

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        handler = lambda e: received.append(e)  # noqa: E731
        bus.subscribe("evt", handler)
        bus.unsubscribe("evt", handler)
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))
        assert received == []

    def test_unsubscribe_nonexistent(self):
        bus = EventBus()
        bus.unsubscribe("evt", lambda e: None)


class TestDepthLimit:
    def test_max_depth_prevents_infinite_loop(self):
        bus = EventBus()
        call_count = 0

        def recursive_handler(event: GameEvent):
            nonlocal call_count
            call_count += 1
            # new source each time so the duplicate guard does not fire first
            bus.emit(
                GameEvent(event_type="chain", data={}, source=f"handler_{call_count}")
            )

        bus.subscribe("chain", recursive_handler)
        bus.emit(GameEvent(event_type="chain", data={}, source="origin"))
        assert call_count == MAX_DEPTH


class TestDuplicatePrevention:
    def test_same_source_same_event_blocked_within_chain(self):
        bus = EventBus()
        count = 0

        def handler(event: GameEvent):
            nonlocal count
            count += 1
            bus.emit(GameEvent(event_type="evt", data={}, source="same_source"))

        bus.subscribe("evt", handler)
        bus.emit(GameEvent(event_type="evt", data={}, source="same_source"))
        assert count == 1

    def test_sequential_emits_delivered(self):
        """The chain ends when the outermost emit returns."""
        bus = EventBus()
        received = []
        bus.subscribe("companion_updated", lambda e: received.append(1))
        for _ in range(3):
            bus.emit(GameEvent(event_type="companion_updated", data={}, source="svc"))
        assert len(received) == 3


class TestHandlerError:
    def test_handler_exception_doesnt_stop_others(self):
        bus = EventBus()
        results = []

        def bad_handler(e):
            raise ValueError("boom")

        bus.subscribe("evt", bad_handler)
        bus.subscribe("evt", lambda e: results.append("ok"))
        bus.emit(GameEvent(event_type="evt", data={}, source="test"))
        assert results == ["ok"]

    def test_chain_released_after_error(self):
        bus = EventBus()
        calls = []

        def flaky(e):
            calls.append(1)
            raise RuntimeError("boom")

        bus.subscribe("evt", flaky)
        bus.emit(GameEvent(event_type="evt", data={}, source="s"))
        bus.emit(GameEvent(event_type="evt", data={}, source="s"))
        assert len(calls) == 2


class TestClear:
    def test_clear_removes_all(self):
        bus = EventBus()
        bus.subscribe("a", lambda e: None)
        bus.subscribe("b", lambda e: None)
        assert bus.handler_count == 2
        bus.clear()
        assert bus.handler_count == 0
