"""
Unit tests for BaseBackendAdapter behaviour shared by every provider:
model-list caching, health checks and model descriptors.
"""

import pytest

from inference_gateway.llm.exceptions import ProviderUnavailableError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_list_models_is_cached_until_ttl_expires(make_adapter):
    clock = FakeClock()
    adapter = make_adapter()
    adapter._clock = clock

    assert await adapter.list_models() == ["model-a"]
    assert await adapter.list_models() == ["model-a"]
    assert adapter.fetches == 1

    clock.now += adapter.model_list_ttl + 1
    adapter.models = ["model-a", "model-b"]
    assert await adapter.list_models() == ["model-a", "model-b"]
    assert adapter.fetches == 2


@pytest.mark.asyncio
async def test_list_models_serves_stale_list_when_refresh_fails(make_adapter):
    clock = FakeClock()
    adapter = make_adapter()
    adapter._clock = clock
    await adapter.list_models()

    clock.now += adapter.model_list_ttl + 1
    adapter.fail_listing = True

    assert await adapter.list_models() == ["model-a"]


@pytest.mark.asyncio
async def test_list_models_raises_when_nothing_cached(make_adapter):
    adapter = make_adapter()
    adapter.fail_listing = True

    with pytest.raises(ProviderUnavailableError):
        await adapter.list_models()


@pytest.mark.asyncio
async def test_health_check_never_raises(make_adapter):
    adapter = make_adapter()
    adapter.fail_listing = True

    assert await adapter.health_check() is False


@pytest.mark.asyncio
async def test_health_check_is_idempotent_for_unchanged_catalog(make_adapter):
    adapter = make_adapter(models=("model-a", "model-b"))

    assert await adapter.health_check() is True
    first = await adapter.list_models()
    assert await adapter.health_check() is True
    assert await adapter.list_models() == first


@pytest.mark.asyncio
async def test_get_model_info_for_known_model_uses_pricing(make_adapter):
    adapter = make_adapter()

    info = await adapter.get_model_info("model-a")

    assert info.key == "fake:model-a"
    assert info.is_available is True
    assert info.context_window == 8192
    assert info.cost_per_input_token == 0.001
    assert info.average_latency_ms == 500


@pytest.mark.asyncio
async def test_get_model_info_for_unknown_model_is_unavailable_not_error(make_adapter):
    adapter = make_adapter()

    info = await adapter.get_model_info("retired-model")

    assert info.is_available is False
    assert info.context_window == adapter.DEFAULT_PRICING.context_window


@pytest.mark.asyncio
async def test_get_model_info_when_listing_fails(make_adapter):
    adapter = make_adapter()
    adapter.fail_listing = True

    info = await adapter.get_model_info("model-a")

    assert info.is_available is False


def test_pricing_prefers_longest_prefix():
    from inference_gateway.llm.ollama_client import OllamaClient

    client = OllamaClient()
    assert client.pricing_for("llama3.1:8b").context_window == 131072
    assert client.pricing_for("llama3:8b").context_window == 8192
    assert client.pricing_for("phi3:mini") is OllamaClient.DEFAULT_PRICING


@pytest.mark.asyncio
async def test_close_is_safe_twice(make_adapter):
    adapter = make_adapter()
    await adapter._get_client()

    await adapter.close()
    await adapter.close()

    assert adapter._client is None
