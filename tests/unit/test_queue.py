"""Tests for the work queue and its dead-letter path."""

import pytest

from orderflow.messaging.queue import FileWorkQueue, InMemoryWorkQueue


class FakeClock:
    """Manually advanced clock for visibility timeouts."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(params=["memory", "file"])
def make_queue(request, tmp_path):
    def _make(**kwargs):
        if request.param == "memory":
            return InMemoryWorkQueue(**kwargs)
        return FileWorkQueue(tmp_path, **kwargs)

    return _make


class TestDelivery:
    """Tests for send/receive/delete."""

    @pytest.mark.asyncio
    async def test_receive_delivers_sent_message(self, make_queue):
        """Test a sent message is delivered with a receipt handle and count 1."""
        queue = make_queue()
        message_id = await queue.send('{"orderId": "o-1"}')

        batch = await queue.receive(10)
        assert len(batch) == 1
        assert batch[0].message_id == message_id
        assert batch[0].body == '{"orderId": "o-1"}'
        assert batch[0].receive_count == 1
        assert batch[0].receipt_handle

    @pytest.mark.asyncio
    async def test_batches_are_bounded(self, make_queue):
        """Test receive returns at most max_messages and keeps the rest."""
        queue = make_queue()
        for i in range(12):
            await queue.send(str(i))

        first = await queue.receive(10)
        second = await queue.receive(10)
        assert len(first) == 10
        assert len(second) == 2
        assert [m.body for m in first] == [str(i) for i in range(10)]

    @pytest.mark.asyncio
    async def test_receive_rejects_oversized_batch(self, make_queue):
        """Test batch size is capped at 10."""
        queue = make_queue()
        with pytest.raises(ValueError):
            await queue.receive(11)

    @pytest.mark.asyncio
    async def test_in_flight_messages_are_invisible(self, make_queue):
        """Test a received message is not delivered again while in flight."""
        queue = make_queue()
        await queue.send("body")
        await queue.receive(10)

        assert await queue.receive(10) == []
        stats = await queue.stats()
        assert (stats.visible, stats.in_flight) == (0, 1)

    @pytest.mark.asyncio
    async def test_delete_acknowledges(self, make_queue):
        """Test a deleted message is gone and a stale handle is ignored."""
        queue = make_queue()
        await queue.send("body")
        [message] = await queue.receive(10)

        assert await queue.delete(message.receipt_handle) is True
        assert await queue.delete(message.receipt_handle) is False
        stats = await queue.stats()
        assert (stats.visible, stats.in_flight, stats.dead_lettered) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_release_makes_message_visible(self, make_queue):
        """Test a released message is delivered again with a higher count."""
        queue = make_queue()
        await queue.send("body")
        [message] = await queue.receive(10)
        assert await queue.release(message.receipt_handle) is True

        [again] = await queue.receive(10)
        assert again.message_id == message.message_id
        assert again.receive_count == 2

    @pytest.mark.asyncio
    async def test_visibility_timeout_redelivers(self, make_queue):
        """Test an unacknowledged message returns after its visibility timeout."""
        clock = FakeClock()
        queue = make_queue(visibility_timeout=30, clock=clock)
        await queue.send("body")
        [message] = await queue.receive(10)

        clock.advance(29)
        assert await queue.receive(10) == []

        clock.advance(1)
        [again] = await queue.receive(10)
        assert again.message_id == message.message_id
        assert await queue.delete(message.receipt_handle) is False


class TestDeadLetters:
    """Tests for the dead-letter path."""

    @pytest.mark.asyncio
    async def test_dead_lettered_after_three_deliveries(self, make_queue):
        """Test a message failing three deliveries moves to the dead-letter path."""
        queue = make_queue(max_receive_count=3)
        message_id = await queue.send("poison")

        for attempt in range(1, 4):
            [message] = await queue.receive(10)
            assert message.receive_count == attempt
            await queue.release(message.receipt_handle)

        assert await queue.receive(10) == []
        dead = await queue.dead_letters()
        assert [m.message_id for m in dead] == [message_id]
        assert dead[0].dead_lettered_at is not None

        stats = await queue.stats()
        assert (stats.visible, stats.in_flight, stats.dead_lettered) == (0, 0, 1)

    @pytest.mark.asyncio
    async def test_dead_letters_never_redelivered_automatically(self, make_queue):
        """Test dead letters stay put across further receives."""
        queue = make_queue(max_receive_count=1)
        await queue.send("poison")
        [message] = await queue.receive(10)
        await queue.release(message.receipt_handle)

        for _ in range(3):
            assert await queue.receive(10) == []
        assert len(await queue.dead_letters()) == 1

    @pytest.mark.asyncio
    async def test_redrive_resets_receive_count(self, make_queue):
        """Test an operator redrive puts the message back with a fresh count."""
        queue = make_queue(max_receive_count=1)
        message_id = await queue.send("poison")
        [message] = await queue.receive(10)
        await queue.release(message.receipt_handle)
        await queue.receive(10)

        assert await queue.redrive_dead_letters() == 1
        [again] = await queue.receive(10)
        assert again.message_id == message_id
        assert again.receive_count == 1
        assert await queue.dead_letters() == []

    @pytest.mark.asyncio
    async def test_redrive_selected_messages(self, make_queue):
        """Test redrive can target specific message ids."""
        queue = make_queue(max_receive_count=1)
        first = await queue.send("a")
        second = await queue.send("b")
        for message in await queue.receive(10):
            await queue.release(message.receipt_handle)
        await queue.receive(10)

        assert await queue.redrive_dead_letters([second, "unknown"]) == 1
        assert [m.message_id for m in await queue.dead_letters()] == [first]


class TestFileWorkQueue:
    """Tests for the file-backed queue."""

    @pytest.mark.asyncio
    async def test_state_shared_between_instances(self, tmp_path):
        """Test separate queue objects over one path see the same messages."""
        producer = FileWorkQueue(tmp_path)
        consumer = FileWorkQueue(tmp_path)
        await producer.send("body")

        [message] = await consumer.receive(10)
        assert message.body == "body"
        assert (await producer.stats()).in_flight == 1
