"""Tests for the TCP poll loop."""

from __future__ import annotations

import asyncio
import logging
import socket

import pytest

from waitfor import waiter as waiter_module
from waitfor.supervisor import DeadlineSupervisor, SupervisorState
from waitfor.waiter import PortWaiter, probe


def test_probe_connects_to_listener(listener):
    asyncio.run(probe("127.0.0.1", listener))


def test_probe_raises_oserror_when_nothing_listens(free_port):
    with pytest.raises(OSError):
        asyncio.run(probe("127.0.0.1", free_port))


def test_wait_returns_within_one_interval_for_open_port(listener):
    waiter = PortWaiter("127.0.0.1", listener)

    outcome = asyncio.run(asyncio.wait_for(waiter.wait(), timeout=2))

    assert outcome.succeeded is True
    assert outcome.attempts == 1
    assert outcome.elapsed_seconds <= 1


def test_wait_keeps_polling_until_listener_appears(free_port):
    async def _run_test():
        task = asyncio.create_task(PortWaiter("127.0.0.1", free_port, interval=0.05).wait())
        await asyncio.sleep(0.3)
        assert not task.done()
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind(("127.0.0.1", free_port))
        server.listen(1)
        try:
            return await asyncio.wait_for(task, timeout=2)
        finally:
            server.close()

    outcome = asyncio.run(_run_test())
    assert outcome.succeeded
    assert outcome.attempts > 1


def test_transient_failures_are_logged_and_retried(monkeypatch, caplog):
    caplog.set_level(logging.DEBUG, logger="waitfor")
    calls = {"count": 0}

    async def _flaky_probe(host, port):
        calls["count"] += 1
        if calls["count"] < 3:
            raise ConnectionRefusedError("refused")

    monkeypatch.setattr(waiter_module, "probe", _flaky_probe)

    outcome = asyncio.run(PortWaiter("db", 5432, interval=0.01).wait())

    assert outcome.attempts == 3
    messages = [record.getMessage() for record in caplog.records]
    assert sum("not available yet" in message for message in messages) == 2
    assert messages[-1].startswith("db:5432 is available after")


def test_name_resolution_failure_is_transient(monkeypatch):
    calls = {"count": 0}

    async def _probe(host, port):
        calls["count"] += 1
        if calls["count"] == 1:
            raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(waiter_module, "probe", _probe)

    assert asyncio.run(PortWaiter("nowhere", 1, interval=0.01).wait()).succeeded


def test_unexpected_errors_propagate(monkeypatch):
    async def _broken_probe(host, port):
        raise RuntimeError("not a connection problem")

    monkeypatch.setattr(waiter_module, "probe", _broken_probe)

    with pytest.raises(RuntimeError):
        asyncio.run(PortWaiter("db", 5432, interval=0.01).wait())


@pytest.mark.parametrize("host", ["foo..bar", "a" * 64 + ".example"])
def test_unencodable_host_name_keeps_polling_until_deadline(host):
    supervisor = DeadlineSupervisor(PortWaiter(host, 80, interval=0.05), timeout=0.5)

    result = asyncio.run(supervisor.run())

    assert result.state is SupervisorState.TIMED_OUT
    assert result.exit_code == 124
