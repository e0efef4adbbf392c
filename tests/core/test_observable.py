"""Tests for push-based current-value streams."""
import asyncio

from core.observable import ValueStream


class TestValueStreamSubscribe:
    """Tests for callback subscriptions."""

    def test__subscribe__replays_current_value(self) -> None:
        stream: ValueStream[int] = ValueStream(1)
        received: list[int] = []

        stream.subscribe(received.append)

        assert received == [1]

    def test__publish__delivers_in_order(self) -> None:
        stream: ValueStream[int] = ValueStream(0)
        received: list[int] = []
        stream.subscribe(received.append)

        stream.publish(1)
        stream.publish(2)

        assert received == [0, 1, 2]
        assert stream.value == 2

    def test__unsubscribe__stops_delivery(self) -> None:
        stream: ValueStream[int] = ValueStream(0)
        received: list[int] = []
        unsubscribe = stream.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        stream.publish(1)

        assert received == [0]

    def test__failing_subscriber__does_not_block_others(self) -> None:
        """An exception in one callback is logged, not propagated."""
        stream: ValueStream[int] = ValueStream(0)
        received: list[int] = []

        def broken(_value: int) -> None:
            raise RuntimeError("boom")

        stream.subscribe(broken)
        stream.subscribe(received.append)
        stream.publish(5)

        assert received == [0, 5]

    def test__replace__updates_value_without_notifying(self) -> None:
        stream: ValueStream[int] = ValueStream(0)
        received: list[int] = []
        stream.subscribe(received.append)

        stream.replace(7)

        assert stream.value == 7
        assert received == [0]


class TestValueStreamIteration:
    """Tests for async iteration."""

    async def test__values__yields_current_then_changes(self) -> None:
        stream: ValueStream[str | None] = ValueStream(None)
        seen: list[str | None] = []

        async def consume() -> None:
            async for value in stream.values():
                seen.append(value)
                if value == "b":
                    return

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        stream.publish("a")
        stream.publish("b")
        await asyncio.wait_for(task, timeout=1)

        assert seen == [None, "a", "b"]
