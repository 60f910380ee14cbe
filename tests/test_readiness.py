import asyncio
import time
from datetime import timedelta

import pytest

from linkerd_await.admin_client import AdminClient
from linkerd_await.errors import ReadinessTimeout
from linkerd_await.readiness import await_ready, await_ready_within


def _client(admin) -> AdminClient:
    return AdminClient(f"localhost:{admin.port}")


def test_ready_immediately(fake_admin):
    asyncio.run(await_ready(_client(fake_admin), timedelta(seconds=1)))
    assert fake_admin.ready_requests == 1


@pytest.mark.parametrize("status", [500, 503, 404, 302])
def test_retries_until_success(fake_admin, status):
    failures = 3
    backoff = timedelta(milliseconds=50)
    fake_admin.ready_statuses = [status] * failures

    started = time.monotonic()
    asyncio.run(await_ready(_client(fake_admin), backoff))
    elapsed = time.monotonic() - started

    assert fake_admin.ready_requests == failures + 1
    assert elapsed >= failures * backoff.total_seconds()


def test_any_2xx_is_ready(fake_admin):
    fake_admin.ready_statuses = [204]
    asyncio.run(await_ready(_client(fake_admin), timedelta(seconds=1)))
    assert fake_admin.ready_requests == 1


def test_connection_error_is_not_ready():
    client = AdminClient("localhost:1")

    async def ask_twice():
        return [await client.probe_ready(), await client.probe_ready()]

    assert asyncio.run(ask_twice()) == [False, False]


def test_fatal_timeout(fake_admin):
    fake_admin.final_status = 503
    started = time.monotonic()
    with pytest.raises(ReadinessTimeout) as excinfo:
        asyncio.run(
            await_ready_within(
                _client(fake_admin),
                timedelta(milliseconds=20),
                timedelta(milliseconds=300),
                timeout_fatal=True,
            )
        )
    elapsed = time.monotonic() - started
    assert excinfo.value.exit_code == 69
    assert "300ms" in str(excinfo.value)
    assert 0.3 <= elapsed < 3.0


def test_non_fatal_timeout_proceeds(fake_admin):
    fake_admin.final_status = 503
    started = time.monotonic()
    asyncio.run(
        await_ready_within(
            _client(fake_admin),
            timedelta(milliseconds=20),
            timedelta(milliseconds=300),
            timeout_fatal=False,
        )
    )
    elapsed = time.monotonic() - started
    assert 0.3 <= elapsed < 3.0
    assert fake_admin.ready_requests >= 1


@pytest.mark.parametrize("timeout", [None, timedelta(0)])
def test_zero_or_absent_timeout_waits_for_ready(fake_admin, timeout):
    fake_admin.ready_statuses = [503, 503]
    asyncio.run(
        await_ready_within(_client(fake_admin), timedelta(milliseconds=10), timeout)
    )
    assert fake_admin.ready_requests == 3


def test_ready_before_deadline(fake_admin):
    fake_admin.ready_statuses = [503]
    asyncio.run(
        await_ready_within(
            _client(fake_admin), timedelta(milliseconds=10), timedelta(seconds=10)
        )
    )
    assert fake_admin.ready_requests == 2


def test_shutdown_is_sent(fake_admin):
    asyncio.run(_client(fake_admin).send_shutdown())
    assert fake_admin.shutdown_requests == 1


def test_shutdown_failure_is_swallowed():
    # Nothing listens on port 1
    asyncio.run(AdminClient("localhost:1").send_shutdown())


def test_proxy_environment_is_ignored(fake_admin, monkeypatch):
    # Nothing listens on the discard port; going through it would fail
    for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.setenv(name, "http://127.0.0.1:9")
    for name in ("NO_PROXY", "no_proxy"):
        monkeypatch.delenv(name, raising=False)

    client = _client(fake_admin)
    assert client.check_ready() is True
    asyncio.run(client.send_shutdown())

    assert fake_admin.ready_requests == 1
    assert fake_admin.shutdown_requests == 1
