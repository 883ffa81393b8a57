"""Unit tests for channel listener bookkeeping and the mock channel."""

import asyncio

import pytest

from webview_ipc.channel import BaseChannel, Channel, ChannelState, MockChannel
from webview_ipc.errors import ChannelUnavailableError


class FailingChannel(BaseChannel):
    """Channel whose open always fails."""

    async def _do_open(self):
        raise OSError("connection refused")

    async def _do_close(self):
        pass

    def _do_emit(self, raw):
        pass


class TestListeners:
    """Test broadcast delivery to subscribers."""

    def test_every_listener_sees_every_message(self):
        channel = MockChannel()
        seen_a, seen_b = [], []
        channel.subscribe(seen_a.append)
        channel.subscribe(seen_b.append)

        channel.deliver('{"type": "a"}')
        channel.deliver('{"type": "b"}')

        assert seen_a == ['{"type": "a"}', '{"type": "b"}']
        assert seen_b == seen_a

    def test_unsubscribe_is_idempotent(self):
        channel = MockChannel()
        seen = []
        unsubscribe = channel.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        channel.deliver('{"type": "a"}')

        assert seen == []
        assert channel.listener_count == 0

    def test_listener_removed_during_dispatch_is_skipped(self):
        """Removing a later listener mid-dispatch stops it from firing."""
        channel = MockChannel()
        seen = []
        unsubscribe_second = None

        def first(raw):
            unsubscribe_second()

        channel.subscribe(first)
        unsubscribe_second = channel.subscribe(seen.append)

        channel.deliver('{"type": "a"}')

        assert seen == []

    def test_listener_added_during_dispatch_waits_for_next_message(self):
        channel = MockChannel()
        seen = []

        def first(raw):
            channel.subscribe(seen.append)

        channel.subscribe(first)
        channel.deliver('{"type": "a"}')

        assert seen == []

    def test_failing_listener_does_not_affect_others(self, caplog):
        channel = MockChannel()
        seen = []

        def broken(raw):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)

        channel.deliver('{"type": "a"}')

        assert seen == ['{"type": "a"}']
        assert "Error in channel listener" in caplog.text


class TestMockChannel:
    """Test the in-memory channel."""

    def test_satisfies_protocol(self):
        assert isinstance(MockChannel(), Channel)

    def test_records_emitted(self):
        channel = MockChannel()
        channel.emit('{"type": "ping"}')

        assert channel.emitted == ['{"type": "ping"}']
        assert channel.emitted_envelopes[0].type == "ping"

    def test_emit_when_closed_raises(self):
        channel = MockChannel(opened=False)

        with pytest.raises(ChannelUnavailableError):
            channel.emit('{"type": "ping"}')

    def test_deliver_accepts_dict(self):
        channel = MockChannel()
        seen = []
        channel.subscribe(seen.append)

        channel.deliver({"type": "stateChanged", "mode": "auto"})

        assert len(seen) == 1
        assert '"stateChanged"' in seen[0]

    def test_deliver_dropped_when_closed(self):
        channel = MockChannel()
        seen = []
        channel.subscribe(seen.append)
        channel.disconnect()

        channel.deliver('{"type": "a"}')

        assert seen == []

    def test_canned_response_without_loop(self):
        """Outside an event loop the response is delivered synchronously."""
        channel = MockChannel()
        channel.set_response("getState", {"mode": "auto"})
        seen = []
        channel.subscribe(seen.append)

        channel.emit('{"type": "getState", "requestId": "r1"}')

        assert len(seen) == 1
        assert '"getState-response"' in seen[0]
        assert '"r1"' in seen[0]

    @pytest.mark.asyncio
    async def test_canned_response_is_asynchronous(self):
        """Inside a loop the response arrives on a later iteration."""
        channel = MockChannel()
        channel.set_response("ping")
        seen = []
        channel.subscribe(seen.append)

        channel.emit('{"type": "ping"}')
        assert seen == []

        await asyncio.sleep(0)
        assert seen == ['{"type": "ping-response"}']

    def test_echo_correlation_off(self):
        channel = MockChannel(echo_correlation=False)
        channel.set_response("ping")
        seen = []
        channel.subscribe(seen.append)

        channel.emit('{"type": "ping", "requestId": "r1"}')

        assert seen == ['{"type": "ping-response"}']

    def test_clear(self):
        channel = MockChannel()
        channel.set_response("ping")
        channel.emit('{"type": "ping"}')
        channel.clear()

        assert channel.emitted == []


class TestLifecycle:
    """Test the channel state machine."""

    @pytest.mark.asyncio
    async def test_open_and_close(self):
        channel = MockChannel(opened=False)
        assert channel.state == ChannelState.CLOSED

        async with channel:
            assert channel.is_open

        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_open_failure_wrapped(self):
        channel = FailingChannel()

        with pytest.raises(ChannelUnavailableError, match="connection refused"):
            await channel.open()
        assert channel.state == ChannelState.CLOSED

    @pytest.mark.asyncio
    async def test_close_callbacks_fire_on_every_close(self):
        channel = MockChannel()
        calls = []
        channel.on_close(lambda: calls.append("closed"))

        await channel.close()
        await channel.close()
        await channel.open()
        channel.disconnect()

        assert calls == ["closed", "closed"]

    def test_close_callback_unsubscribe(self):
        channel = MockChannel()
        calls = []
        unsubscribe = channel.on_close(lambda: calls.append("closed"))

        unsubscribe()
        channel.disconnect()

        assert calls == []
