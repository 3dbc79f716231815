"""Tests for the catalog client and webhook notifier."""

import random

import httpx
import pytest

from dashgate.core.errors import CatalogFetchError
from dashgate.integrations.catalog import CatalogClient, RecoveryAction, classify_error
from dashgate.integrations.webhook import WebhookNotifier
from dashgate.models.dashboard import DashboardConfig
from dashgate.versions.store import VersionStore


def _client(handler) -> CatalogClient:
    return CatalogClient(
        "https://catalog.test/",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestClassifyError:
    def test_network_means_retry(self):
        assert classify_error("Catalog network timeout") == RecoveryAction.RETRY

    def test_json_means_reset(self):
        assert classify_error("Catalog returned invalid JSON") == RecoveryAction.RESET_LOCAL_STATE

    def test_unknown(self):
        assert classify_error("Catalog responded 500") is None
        assert classify_error("") is None


class TestCatalogClient:
    def test_fetch_widgets(self):
        def handler(request):
            assert request.url.path == "/widgets"
            return httpx.Response(200, json=[{"id": "t1", "name": "Revenue Overview"}])

        items = _client(handler).fetch_widgets()
        assert [i.name for i in items] == ["Revenue Overview"]

    def test_fetch_data_sources_items_envelope(self):
        def handler(request):
            assert request.url.path == "/data-sources"
            return httpx.Response(200, json={"items": [{"id": "ds1", "name": "Orders"}]})

        assert [i.name for i in _client(handler).fetch_data_sources()] == ["Orders"]

    def test_timeout_suggests_retry(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(CatalogFetchError) as exc_info:
            _client(handler).fetch_widgets()
        assert exc_info.value.recovery == "retry"

    def test_connection_error_suggests_retry(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CatalogFetchError) as exc_info:
            _client(handler).fetch_widgets()
        assert exc_info.value.recovery == "retry"

    def test_bad_json_suggests_reset(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>")

        with pytest.raises(CatalogFetchError) as exc_info:
            _client(handler).fetch_widgets()
        assert exc_info.value.recovery == "reset_local_state"

    def test_http_error_has_no_recovery(self):
        def handler(request):
            return httpx.Response(503)

        with pytest.raises(CatalogFetchError) as exc_info:
            _client(handler).fetch_widgets()
        assert "503" in exc_info.value.message
        assert exc_info.value.recovery is None

    def test_malformed_items(self):
        def handler(request):
            return httpx.Response(200, json=[{"name": "no id"}])

        with pytest.raises(CatalogFetchError) as exc_info:
            _client(handler).fetch_widgets()
        assert exc_info.value.recovery == "reset_local_state"


class TestWebhookNotifier:
    def setup_method(self):
        self.version = VersionStore().record(DashboardConfig())

    def test_delivered(self):
        result = WebhookNotifier(success_rate=1.0).notify(self.version)
        assert result.success
        assert result.message == f"Webhook delivered for {self.version.id}"

    def test_failed(self):
        result = WebhookNotifier(success_rate=0.0, rng=random.Random(3)).notify(self.version)
        assert not result.success
        assert "publish kept" in result.message
