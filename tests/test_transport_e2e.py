"""End-to-end tests: autosave client talking to the real app over ASGI."""

import asyncio
import copy

import httpx
import pytest
import pytest_asyncio

from draft_sync.api import app
from draft_sync.auth import issue_token
from draft_sync.client import AutosaveScheduler, ConflictResolution, HttpDraftTransport, SaveState
from draft_sync.config import Settings
from draft_sync.errors import (
    AuthError,
    PayloadTooLargeError,
    PayloadValidationError,
    StorageError,
    TransportError,
)
from draft_sync.normalizer import content_hash
from draft_sync.outcomes import Conflict, NoOp, RateLimited, Written

BASE_URL = "http://testserver"


@pytest_asyncio.fixture
async def http_client(app_overrides):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL) as client:
        yield client


@pytest.fixture
def transport(http_client, owner_id):
    return HttpDraftTransport(BASE_URL, issue_token(owner_id), client=http_client)


def _edited(payload, title):
    other = copy.deepcopy(payload)
    other["formData"]["title"] = title
    return other


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_save_and_resend(self, transport, draft_key, payload):
        first = await transport.save(draft_key, payload, None)
        again = await transport.save(draft_key, payload, 1)

        assert isinstance(first, Written)
        assert first.version == 1
        assert first.content_hash == content_hash(payload)
        assert isinstance(again, NoOp)
        assert again.version == 1

    @pytest.mark.asyncio
    async def test_stale_save_decodes_conflict(self, transport, draft_key, payload):
        await transport.save(draft_key, payload, None)
        await transport.save(draft_key, _edited(payload, "A"), 1)

        outcome = await transport.save(draft_key, _edited(payload, "B"), 1)
        assert isinstance(outcome, Conflict)
        assert outcome.server_version == 2

    @pytest.mark.asyncio
    async def test_throttled_save_decodes_rate_limited(self, transport, draft_key, payload):
        for i in range(3):
            await transport.save(draft_key, _edited(payload, f"Sale {i}"), None)

        outcome = await transport.save(draft_key, _edited(payload, "Sale 3"), None)
        assert isinstance(outcome, RateLimited)
        assert outcome.retry_after >= 1

    @pytest.mark.asyncio
    async def test_fetch_and_archive(self, transport, draft_key, payload):
        assert await transport.fetch(draft_key) is None

        await transport.save(draft_key, payload, None)
        record = await transport.fetch(draft_key)
        assert record["version"] == 1
        assert record["contentHash"] == content_hash(payload)

        assert await transport.archive(draft_key) == 1
        assert await transport.fetch(draft_key) is None

    @pytest.mark.asyncio
    async def test_bad_token_raises_auth_error(self, http_client, draft_key, payload):
        transport = HttpDraftTransport(BASE_URL, "not-a-token", client=http_client)
        with pytest.raises(AuthError):
            await transport.save(draft_key, payload, None)

    @pytest.mark.asyncio
    async def test_invalid_payload_raises_validation_error(self, transport, draft_key, payload):
        payload["formData"]["lat"] = 500
        with pytest.raises(PayloadValidationError) as exc_info:
            await transport.save(draft_key, payload, None)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_from_settings_uses_configured_api(self):
        settings = Settings(client_base_url="http://drafts.local/", client_timeout_seconds=5)
        transport = HttpDraftTransport.from_settings("token", settings)

        assert transport.base_url == "http://drafts.local"
        assert transport.client.timeout.read == 5
        await transport.close()
        assert transport.client.is_closed


class TestTransportErrorMapping:
    def _transport(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
        return HttpDraftTransport(BASE_URL, "token", client=client)

    @pytest.mark.asyncio
    async def test_network_failure_raises_transport_error(self, draft_key, payload):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            await self._transport(handler).save(draft_key, payload, None)
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_server_error_raises_storage_error(self, draft_key, payload):
        def handler(request):
            return httpx.Response(
                500, json={"ok": False, "code": "STORAGE_ERROR", "error": "Failed to update draft"}
            )

        with pytest.raises(StorageError):
            await self._transport(handler).save(draft_key, payload, None)

    @pytest.mark.asyncio
    async def test_payload_too_large_is_distinguished(self, draft_key, payload):
        def handler(request):
            return httpx.Response(
                400, json={"ok": False, "code": "PAYLOAD_TOO_LARGE", "error": "Too large"}
            )

        with pytest.raises(PayloadTooLargeError):
            await self._transport(handler).save(draft_key, payload, None)

    @pytest.mark.asyncio
    async def test_malformed_success_body_raises_transport_error(self, draft_key, payload):
        def handler(request):
            return httpx.Response(200, json={"ok": True})

        with pytest.raises(TransportError):
            await self._transport(handler).save(draft_key, payload, None)


class TestAutosaveEndToEnd:
    @pytest.mark.asyncio
    async def test_autosave_reaches_server(self, transport, draft_key, payload):
        scheduler = AutosaveScheduler(transport, draft_key, debounce_seconds=0.01, min_interval_seconds=0)

        scheduler.edit(payload)
        scheduler.edit(_edited(payload, "Final title"))
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        record = await transport.fetch(draft_key)
        assert scheduler.state == SaveState.SAVED
        assert record["payload"]["formData"]["title"] == "Final title"
        assert record["version"] == scheduler.last_acked_version == 1
        assert record["contentHash"] == scheduler.last_acked_hash

    @pytest.mark.asyncio
    async def test_two_tabs_conflict_and_reload(self, http_client, owner_id, draft_key, payload):
        token = issue_token(owner_id)
        tab_a = AutosaveScheduler(
            HttpDraftTransport(BASE_URL, token, client=http_client),
            draft_key,
            debounce_seconds=0.01,
            min_interval_seconds=0,
        )
        tab_a.edit(payload)
        await asyncio.wait_for(tab_a.flush(), timeout=5)

        # Tab B opens the same draft at version 1
        tab_b = AutosaveScheduler(
            HttpDraftTransport(BASE_URL, token, client=http_client),
            draft_key,
            debounce_seconds=0.01,
            min_interval_seconds=0,
            acked_version=tab_a.last_acked_version,
            acked_hash=tab_a.last_acked_hash,
        )

        tab_a.edit(_edited(payload, "Edited in tab A"))
        await asyncio.wait_for(tab_a.flush(), timeout=5)
        assert tab_a.last_acked_version == 2

        tab_b.edit(_edited(payload, "Edited in tab B"))
        await asyncio.wait_for(tab_b.flush(), timeout=5)
        assert tab_b.state == SaveState.CONFLICT
        assert tab_b.server_version == 2

        restored = await tab_b.resolve_conflict(ConflictResolution.RELOAD)
        assert restored["formData"]["title"] == "Edited in tab A"
        assert tab_b.last_acked_version == 2
        assert tab_b.state == SaveState.SAVED

    @pytest.mark.asyncio
    async def test_keep_local_overwrites_other_tab(self, http_client, owner_id, draft_key, payload):
        token = issue_token(owner_id)
        writer = HttpDraftTransport(BASE_URL, token, client=http_client)
        await writer.save(draft_key, payload, None)
        await writer.save(draft_key, _edited(payload, "Other tab"), 1)

        tab = AutosaveScheduler(
            HttpDraftTransport(BASE_URL, token, client=http_client),
            draft_key,
            debounce_seconds=0.01,
            min_interval_seconds=0,
            acked_version=1,
        )
        tab.edit(_edited(payload, "Mine"))
        await asyncio.wait_for(tab.flush(), timeout=5)
        assert tab.state == SaveState.CONFLICT

        await tab.resolve_conflict(ConflictResolution.KEEP_LOCAL)
        await asyncio.wait_for(tab.wait_idle(), timeout=5)

        record = await writer.fetch(draft_key)
        assert tab.state == SaveState.SAVED
        assert record["version"] == 3
        assert record["payload"]["formData"]["title"] == "Mine"
