"""Prediction service for RoofEstimate.

The calling layer around ConsensusEngine. Owns a bounded result cache so
the engine itself stays stateless; only successful predictions are cached.
"""

import hashlib
import re
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple, Union
import structlog

from config.settings import settings
from consensus.engine import ConsensusEngine
from models.consensus import ConsensusResult

logger = structlog.get_logger()


def normalize_address(address: str) -> str:
    """Case- and whitespace-insensitive form of an address."""
    collapsed = re.sub(r"\s+", " ", address.strip().lower())
    return re.sub(r"\s*,\s*", ", ", collapsed)


def cache_key(address: str, image_data: Optional[Union[bytes, str]] = None) -> str:
    """Cache key: normalized address, plus an image digest when an image is given."""
    key = normalize_address(address)
    if image_data:
        raw = image_data.encode("utf-8") if isinstance(image_data, str) else image_data
        key = f"{key}#{hashlib.sha256(raw).hexdigest()}"
    return key


class PredictionCache:
    """Bounded LRU cache with per-entry time-to-live.

    Entries expire `ttl_seconds` after insertion; when full, the least
    recently used entry is evicted.
    """

    def __init__(
        self,
        max_size: int = 256,
        ttl_seconds: float = 86400,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, ConsensusResult]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[ConsensusResult]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, result = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return result

    def put(self, key: str, result: ConsensusResult) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, result)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("prediction_cache_evicted", key=evicted)

    def clear(self) -> None:
        self._entries.clear()


class PredictionService:
    """Cached entry point for consensus predictions."""

    def __init__(
        self,
        engine: Optional[ConsensusEngine] = None,
        cache: Optional[PredictionCache] = None
    ):
        """Initialize PredictionService.

        Args:
            engine: Optional consensus engine instance.
            cache: Optional cache (default sized from settings).
        """
        self.engine = engine or ConsensusEngine()
        self.cache = cache or PredictionCache(
            max_size=settings.prediction_cache_size,
            ttl_seconds=settings.prediction_cache_ttl_seconds
        )

    async def predict(
        self,
        address: str,
        image_data: Optional[Union[bytes, str]] = None,
        use_cache: bool = True
    ) -> ConsensusResult:
        """Predict roof geometry, serving repeat requests from the cache.

        Args:
            address: Property address.
            image_data: Optional overhead image.
            use_cache: Set False to force a fresh prediction.

        Returns:
            ConsensusResult.

        Raises:
            ConsensusError: Propagated from the engine; failures are not cached.
        """
        key = cache_key(address, image_data)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("prediction_cache_hit", address=address)
                return cached
            logger.info("prediction_cache_miss", address=address)

        result = await self.engine.predict(address, image_data)
        self.cache.put(key, result)
        return result
