"""
Tests for clogwench.correlator - request/reply matching.
"""

import asyncio

import pytest

from clogwench.correlator import Correlator
from clogwench.errors import ConnectionClosed, RequestTimeout
from clogwench.protocol import Message, MessageKind, app_connect, db_query_request


def _reply(kind=MessageKind.DB_QUERY_RESPONSE, request_id=None):
    return Message(kind=kind, payload={"results": []}, request_id=request_id)


class TestRegister:
    @pytest.mark.asyncio
    async def test_assigns_request_id(self):
        corr = Correlator()
        msg = app_connect()
        corr.register(msg)
        assert msg.request_id
        assert corr.pending == 1
        assert corr.is_pending(msg.request_id)

    @pytest.mark.asyncio
    async def test_keeps_caller_id(self):
        corr = Correlator()
        msg = app_connect()
        msg.request_id = "mine"
        corr.register(msg)
        assert msg.request_id == "mine"

    @pytest.mark.asyncio
    async def test_duplicate_id_replaced(self):
        corr = Correlator()
        first, second = app_connect(), app_connect()
        first.request_id = second.request_id = "dup"
        corr.register(first)
        corr.register(second)
        assert second.request_id != "dup"
        assert corr.pending == 2


class TestResolve:
    @pytest.mark.asyncio
    async def test_by_id_out_of_order(self):
        corr = Correlator()
        a, b = db_query_request("app", "a"), db_query_request("app", "b")
        fut_a, fut_b = corr.register(a), corr.register(b)

        reply_b = _reply(request_id=b.request_id)
        assert corr.resolve(reply_b)
        assert fut_b.result() is reply_b
        assert not fut_a.done()
        assert corr.pending == 1

    @pytest.mark.asyncio
    async def test_without_id_oldest_first(self):
        corr = Correlator()
        fut_a = corr.register(db_query_request("app", "a"))
        fut_b = corr.register(db_query_request("app", "b"))

        first, second = _reply(), _reply()
        corr.resolve(first)
        corr.resolve(second)
        assert fut_a.result() is first
        assert fut_b.result() is second

    @pytest.mark.asyncio
    async def test_expired_id_does_not_resolve_other_request(self, caplog):
        corr = Correlator()
        late = db_query_request("app", "a")
        fut_late = corr.register(late)
        with pytest.raises(RequestTimeout):
            await corr.wait(late.request_id, fut_late, timeout=0.01)

        current = db_query_request("app", "b")
        fut = corr.register(current)
        assert corr.resolve(_reply(request_id=late.request_id)) is False
        assert not fut.done()
        assert corr.is_pending(current.request_id)
        assert "expired" in caplog.text

        reply = _reply(request_id=current.request_id)
        assert corr.resolve(reply)
        assert fut.result() is reply

    @pytest.mark.asyncio
    async def test_unsolicited(self, caplog):
        corr = Correlator()
        assert corr.resolve(_reply()) is False
        assert "Unsolicited" in caplog.text


class TestWait:
    @pytest.mark.asyncio
    async def test_wait_returns_reply(self):
        corr = Correlator()
        msg = app_connect()
        fut = corr.register(msg)
        reply = _reply(MessageKind.APP_CONNECT_RESPONSE, msg.request_id)
        asyncio.get_running_loop().call_soon(corr.resolve, reply)
        assert await corr.wait(msg.request_id, fut, timeout=1.0) is reply

    @pytest.mark.asyncio
    async def test_timeout(self):
        corr = Correlator()
        msg = app_connect()
        fut = corr.register(msg)
        with pytest.raises(RequestTimeout) as exc_info:
            await corr.wait(msg.request_id, fut, timeout=0.05)
        assert exc_info.value.context["request_id"] == msg.request_id
        assert corr.pending == 0
        # a late reply is now unsolicited
        assert corr.resolve(_reply(request_id=msg.request_id)) is False

    @pytest.mark.asyncio
    async def test_timeout_is_timeout_error(self):
        corr = Correlator()
        msg = app_connect()
        fut = corr.register(msg)
        with pytest.raises(TimeoutError):
            await corr.wait(msg.request_id, fut, timeout=0.01)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_removed(self):
        corr = Correlator()
        msg = app_connect()
        fut = corr.register(msg)
        task = asyncio.ensure_future(corr.wait(msg.request_id, fut))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert corr.pending == 0

    @pytest.mark.asyncio
    async def test_discard(self):
        corr = Correlator()
        msg = app_connect()
        fut = corr.register(msg)
        corr.discard(msg.request_id)
        corr.discard(None)
        assert fut.cancelled()
        assert corr.pending == 0


class TestFailAll:
    @pytest.mark.asyncio
    async def test_fails_every_waiter(self):
        corr = Correlator()
        futs = [corr.register(app_connect()) for _ in range(3)]
        assert corr.fail_all() == 3
        assert corr.pending == 0
        for fut in futs:
            with pytest.raises(ConnectionClosed):
                fut.result()

    @pytest.mark.asyncio
    async def test_custom_exception(self):
        corr = Correlator()
        fut = corr.register(app_connect())
        corr.fail_all(RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            fut.result()

    @pytest.mark.asyncio
    async def test_empty(self):
        assert Correlator().fail_all() == 0
