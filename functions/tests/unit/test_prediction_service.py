"""Unit tests for the cached prediction service."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from config.errors import ConsensusError, ErrorCode
from consensus.engine import ConsensusEngine
from services.prediction_service import (
    PredictionCache,
    PredictionService,
    cache_key,
    normalize_address,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_engine():
    engine = MagicMock(spec=ConsensusEngine)
    engine.predict = AsyncMock(side_effect=lambda address, image_data=None: MagicMock(name=f"result:{address}"))
    return engine


class TestCacheKey:
    """Tests for address normalization and cache keys."""

    def test_normalize_address(self):
        assert normalize_address("  123 Main St ,Springfield,  IL ") == "123 main st, springfield, il"

    def test_equivalent_addresses_share_key(self):
        assert cache_key("123 Main St, Springfield") == cache_key("123  MAIN st,Springfield")

    def test_image_changes_key(self):
        plain = cache_key("123 Main St")
        with_bytes = cache_key("123 Main St", b"\x89PNG")
        with_other = cache_key("123 Main St", b"\xff\xd8")

        assert plain != with_bytes != with_other
        assert with_bytes.startswith("123 main st#")

    def test_string_and_bytes_images_hash_alike(self):
        assert cache_key("1 Oak Ln", "abc") == cache_key("1 Oak Ln", b"abc")


class TestPredictionCache:
    """Tests for PredictionCache."""

    def test_get_and_put(self, clock):
        cache = PredictionCache(max_size=2, ttl_seconds=60, clock=clock)
        result = MagicMock()

        cache.put("a", result)

        assert cache.get("a") is result
        assert cache.get("missing") is None

    def test_entries_expire(self, clock):
        cache = PredictionCache(max_size=2, ttl_seconds=60, clock=clock)
        cache.put("a", MagicMock())

        clock.now += 59
        assert cache.get("a") is not None
        clock.now += 1
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_least_recently_used_evicted(self, clock):
        cache = PredictionCache(max_size=2, ttl_seconds=60, clock=clock)
        cache.put("a", MagicMock())
        cache.put("b", MagicMock())
        cache.get("a")

        cache.put("c", MagicMock())

        assert len(cache) == 2
        assert cache.get("b") is None
        assert cache.get("a") is not None
        assert cache.get("c") is not None

    def test_clear(self, clock):
        cache = PredictionCache(clock=clock)
        cache.put("a", MagicMock())

        cache.clear()

        assert len(cache) == 0

    @pytest.mark.parametrize("kwargs", [{"max_size": 0}, {"ttl_seconds": 0}])
    def test_rejects_invalid_bounds(self, kwargs):
        with pytest.raises(ValueError):
            PredictionCache(**kwargs)


class TestPredictionService:
    """Tests for PredictionService.predict."""

    @pytest.mark.asyncio
    async def test_repeat_request_served_from_cache(self, mock_engine, clock):
        service = PredictionService(engine=mock_engine, cache=PredictionCache(clock=clock))

        first = await service.predict("123 Main St")
        second = await service.predict("  123 main st ")

        assert first is second
        mock_engine.predict.assert_awaited_once_with("123 Main St", None)

    @pytest.mark.asyncio
    async def test_use_cache_false_forces_prediction(self, mock_engine, clock):
        service = PredictionService(engine=mock_engine, cache=PredictionCache(clock=clock))

        await service.predict("123 Main St")
        await service.predict("123 Main St", use_cache=False)

        assert mock_engine.predict.await_count == 2

    @pytest.mark.asyncio
    async def test_image_is_part_of_key(self, mock_engine, clock):
        service = PredictionService(engine=mock_engine, cache=PredictionCache(clock=clock))

        await service.predict("123 Main St")
        await service.predict("123 Main St", image_data=b"\x89PNG")

        assert mock_engine.predict.await_count == 2

    @pytest.mark.asyncio
    async def test_failures_not_cached(self, mock_engine, clock):
        error = ConsensusError(
            code=ErrorCode.ESTIMATOR_FAILED,
            message="vision estimator failed: timeout",
            estimator="vision"
        )
        mock_engine.predict = AsyncMock(side_effect=[error, MagicMock()])
        service = PredictionService(engine=mock_engine, cache=PredictionCache(clock=clock))

        with pytest.raises(ConsensusError):
            await service.predict("123 Main St")
        result = await service.predict("123 Main St")

        assert result is not None
        assert mock_engine.predict.await_count == 2
        assert len(service.cache) == 1

    def test_default_cache_from_settings(self, mock_engine, mock_settings):
        mock_settings.prediction_cache_size = 8
        mock_settings.prediction_cache_ttl_seconds = 30.0

        service = PredictionService(engine=mock_engine)

        assert service.cache.max_size == 8
        assert service.cache.ttl_seconds == 30.0
