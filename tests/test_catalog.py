"""
Tests for catalog normalization and the /models fetch (httpx mocked).
"""

import threading

import httpx
import pytest

from openrouter_agent.core.catalog import ATTRIBUTION_HEADERS, fetch_catalog, fetch_models
from openrouter_agent.core.errors import NetworkFailure, OperationCancelled
from openrouter_agent.models.catalog import ModelCatalog, ModelDescriptor

SAMPLE_PAYLOAD = {
    "data": [
        {
            "id": "meta-llama/llama-3.3-70b-instruct:free",
            "name": "Llama 3.3 70B (free)",
            "context_length": 131072,
            "pricing": {"prompt": "0", "completion": "0", "request": "0", "image": "0"},
            "top_provider": {"is_moderated": False},
            "architecture": {"input_modalities": ["text"], "output_modalities": ["text"]},
        },
        {
            "id": "openai/gpt-4o-mini",
            "context_length": "128000",
            "pricing": {"prompt": "0.00000015", "completion": "0.0000006"},
            "top_provider": {"is_moderated": True},
            "architecture": {"input_modalities": ["text", "image"], "output_modalities": ["text"]},
        },
        {"name": "entry without id"},
        {"id": 42},
        "not a dict",
    ]
}


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestModelDescriptor:
    def test_from_payload_normalizes_fields(self):
        model = ModelDescriptor.from_payload(SAMPLE_PAYLOAD["data"][1])
        assert model.id == "openai/gpt-4o-mini"
        assert model.context_length == 128000
        assert model.pricing.prompt == pytest.approx(0.00000015)
        assert model.pricing.request is None
        assert model.moderated is True
        assert model.input_modalities == frozenset({"text", "image"})

    def test_missing_optional_fields(self):
        model = ModelDescriptor.from_payload({"id": "x/y"})
        assert model.name is None
        assert model.context_length is None
        assert model.pricing is None
        assert model.moderated is None
        assert model.input_modalities is None

    def test_garbage_values_become_unknown(self):
        model = ModelDescriptor.from_payload({
            "id": "x/y",
            "context_length": "lots",
            "pricing": {"prompt": "NaN", "completion": True, "request": None},
            "top_provider": {"is_moderated": "yes"},
            "architecture": {"input_modalities": "text"},
        })
        assert model.context_length is None
        assert model.pricing.prompt is None
        assert model.pricing.completion is None
        assert model.moderated is None
        assert model.input_modalities is None

    @pytest.mark.parametrize("raw", [{"name": "no id"}, {"id": ""}, {"id": 7}, None, "x/y"])
    def test_rejects_entries_without_id(self, raw):
        assert ModelDescriptor.from_payload(raw) is None


class TestModelCatalog:
    def test_from_payload_skips_bad_entries(self):
        catalog = ModelCatalog.from_payload(SAMPLE_PAYLOAD)
        assert len(catalog) == 2
        assert [m.id for m in catalog] == [
            "meta-llama/llama-3.3-70b-instruct:free",
            "openai/gpt-4o-mini",
        ]

    def test_get(self):
        catalog = ModelCatalog.from_payload(SAMPLE_PAYLOAD)
        assert catalog.get("openai/gpt-4o-mini").context_length == 128000
        assert catalog.get("missing/model") is None

    @pytest.mark.parametrize("payload", [{}, {"data": None}, {"data": {"id": "x"}}, [], None])
    def test_unexpected_shapes_are_empty(self, payload):
        assert len(ModelCatalog.from_payload(payload)) == 0

    def test_snapshot_is_immutable(self):
        catalog = ModelCatalog.from_payload(SAMPLE_PAYLOAD)
        assert isinstance(catalog.models, tuple)


class TestFetchCatalog:
    def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            return httpx.Response(200, json=SAMPLE_PAYLOAD)

        catalog = fetch_catalog(client=_client(handler))

        assert seen["url"] == "https://openrouter.ai/api/v1/models"
        for name, value in ATTRIBUTION_HEADERS.items():
            assert seen["headers"][name] == value
        assert len(catalog) == 2

    def test_fetch_models_returns_list(self):
        models = fetch_models(client=_client(lambda r: httpx.Response(200, json=SAMPLE_PAYLOAD)))
        assert isinstance(models, list)
        assert models[0].id == "meta-llama/llama-3.3-70b-instruct:free"

    def test_http_error_status(self):
        client = _client(lambda r: httpx.Response(503))
        with pytest.raises(NetworkFailure) as exc_info:
            fetch_catalog(client=client)
        assert exc_info.value.status_code == 503
        assert "Failed to fetch models: 503 Service Unavailable" in str(exc_info.value)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("no route to host", request=request)

        with pytest.raises(NetworkFailure) as exc_info:
            fetch_catalog(client=_client(handler))
        assert exc_info.value.status_code is None

    def test_invalid_json(self):
        client = _client(lambda r: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(NetworkFailure, match="Invalid response"):
            fetch_catalog(client=client)

    def test_data_not_a_list(self):
        client = _client(lambda r: httpx.Response(200, json={"data": "nope"}))
        assert len(fetch_catalog(client=client)) == 0

    def test_cancelled_before_request(self):
        called = []

        def handler(request):
            called.append(request)
            return httpx.Response(200, json=SAMPLE_PAYLOAD)

        cancel = threading.Event()
        cancel.set()
        with pytest.raises(OperationCancelled):
            fetch_catalog(client=_client(handler), cancel=cancel)
        assert called == []

    def test_cancelled_during_request(self):
        cancel = threading.Event()

        def handler(request):
            cancel.set()
            return httpx.Response(200, json=SAMPLE_PAYLOAD)

        with pytest.raises(OperationCancelled):
            fetch_catalog(client=_client(handler), cancel=cancel)

    def test_caller_client_is_not_closed(self):
        client = _client(lambda r: httpx.Response(200, json=SAMPLE_PAYLOAD))
        fetch_catalog(client=client)
        assert not client.is_closed
