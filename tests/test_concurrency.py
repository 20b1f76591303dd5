"""
Concurrency Tests for the Refresh Coordinator

These tests validate that requests failing authorization while a refresh is
in flight share that single refresh, are released together with its outcome,
and leave no state behind.
"""

import asyncio

import pytest

from bearer_refresh import (
    InMemoryCredentialStore,
    MissingRefreshCredentialError,
    RefreshAbortedError,
    RefreshEndpointError,
)
from tests.fixtures.token_server import GatedStore, wait_until


class TestSingleFlightRefresh:

    @pytest.mark.asyncio
    async def test_queued_requests_reuse_in_flight_refresh(self, server, store, make_client):
        """
        One request drives the refresh; two more fail while it is held open.
        All three complete with the refreshed credential after one refresh call.
        """
        release = server.hold_refresh()
        client = make_client(store)
        coordinator = client.auth.coordinator

        driver = asyncio.create_task(client.get("/data/0"))
        await asyncio.wait_for(server.refresh_started.wait(), timeout=1.0)
        assert coordinator.is_refreshing

        queued = [
            asyncio.create_task(client.get("/data/1")),
            asyncio.create_task(client.get("/data/2")),
        ]
        await wait_until(lambda: coordinator.pending_count == 2)

        release.set()
        responses = await asyncio.gather(driver, *queued)

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert len(server.refresh_calls) == 1
        retried = [auth for path, auth in server.api_calls if path in ("/data/1", "/data/2")]
        assert retried.count("Bearer abc2") == 2
        assert coordinator.pending_count == 0
        assert not coordinator.is_refreshing

    @pytest.mark.parametrize("num_requests", [1, 5, 25])
    @pytest.mark.asyncio
    async def test_refresh_count_independent_of_concurrency(self, server, store, make_client, num_requests):
        release = server.hold_refresh()
        client = make_client(store)
        coordinator = client.auth.coordinator

        tasks = [
            asyncio.create_task(client.get(f"/data/{i}")) for i in range(num_requests)
        ]
        await wait_until(lambda: coordinator.pending_count == num_requests - 1)
        release.set()
        responses = await asyncio.gather(*tasks)

        assert all(r.status_code == 200 for r in responses)
        assert len(server.refresh_calls) == 1
        assert {r.json()["authorization"] for r in responses} == {"Bearer abc2"}

    @pytest.mark.asyncio
    async def test_queued_requests_share_refresh_failure(self, server, store, make_client):
        server.refresh_status = 503
        release = server.hold_refresh()
        failures = []
        client = make_client(store, on_refresh_failure=failures.append)
        coordinator = client.auth.coordinator

        tasks = [asyncio.create_task(client.get(f"/data/{i}")) for i in range(4)]
        await wait_until(lambda: coordinator.pending_count == 3)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, RefreshEndpointError) for r in results)
        assert len({id(r) for r in results}) == 1
        assert results[0].status_code == 503
        assert failures == [results[0]]
        assert len(server.refresh_calls) == 1
        assert coordinator.pending_count == 0
        assert not coordinator.is_refreshing

    @pytest.mark.asyncio
    async def test_missing_refresh_credential_rejects_everyone(self, server, make_client):
        store = GatedStore("abc", None)
        failures = []

        async def on_failure(error):
            failures.append(error)

        client = make_client(store, on_refresh_failure=on_failure)
        coordinator = client.auth.coordinator

        driver = asyncio.create_task(client.get("/data/0"))
        await wait_until(lambda: coordinator.is_refreshing)
        queued = [asyncio.create_task(client.get(f"/data/{i}")) for i in (1, 2)]
        await wait_until(lambda: coordinator.pending_count == 2)

        store.gate.set()
        results = await asyncio.gather(driver, *queued, return_exceptions=True)

        assert all(isinstance(r, MissingRefreshCredentialError) for r in results)
        assert results[0] is results[1] is results[2]
        assert len(failures) == 1
        assert store.credential is None
        assert server.refresh_calls == []

    @pytest.mark.asyncio
    async def test_cancelled_driver_releases_waiters(self, server, store, make_client):
        server.hold_refresh()
        client = make_client(store)
        coordinator = client.auth.coordinator

        driver = asyncio.create_task(client.get("/data/0"))
        await asyncio.wait_for(server.refresh_started.wait(), timeout=1.0)
        waiter = asyncio.create_task(client.get("/data/1"))
        await wait_until(lambda: coordinator.pending_count == 1)

        driver.cancel()
        with pytest.raises(asyncio.CancelledError):
            await driver
        with pytest.raises(RefreshAbortedError):
            await waiter

        assert coordinator.pending_count == 0
        assert not coordinator.is_refreshing

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_block_others(self, server, store, make_client):
        release = server.hold_refresh()
        client = make_client(store)
        coordinator = client.auth.coordinator

        driver = asyncio.create_task(client.get("/data/0"))
        await asyncio.wait_for(server.refresh_started.wait(), timeout=1.0)
        impatient = asyncio.create_task(client.get("/data/1"))
        patient = asyncio.create_task(client.get("/data/2"))
        await wait_until(lambda: coordinator.pending_count == 2)

        impatient.cancel()
        with pytest.raises(asyncio.CancelledError):
            await impatient
        release.set()

        assert (await driver).status_code == 200
        assert (await patient).status_code == 200
        assert coordinator.pending_count == 0


class TestClientIsolation:

    @pytest.mark.asyncio
    async def test_refresh_state_not_shared_between_clients(self, server, make_client):
        release = server.hold_refresh()
        first = make_client(InMemoryCredentialStore("abc", "r1"))
        second = make_client(InMemoryCredentialStore("abc", "r1"))

        first_task = asyncio.create_task(first.get("/data/a"))
        await asyncio.wait_for(server.refresh_started.wait(), timeout=1.0)
        second_task = asyncio.create_task(second.get("/data/b"))
        await wait_until(lambda: len(server.refresh_calls) == 2)

        assert first.auth.coordinator.is_refreshing
        assert second.auth.coordinator.is_refreshing
        assert second.auth.coordinator.pending_count == 0

        release.set()
        responses = await asyncio.gather(first_task, second_task)
        assert [r.status_code for r in responses] == [200, 200]
