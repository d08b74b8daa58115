"""
Property context lookups for RoofEstimate.

Best-effort retrieval of the building context the geometry estimator uses:
year built, architectural style, footprint, coordinates and neighborhood
roof statistics.

Architecture:
- Talks to an optional property-data HTTP API (PROPERTY_DATA_URL)
- Two endpoints: GET /properties?address=... and GET /neighborhoods?address=...
- Transient HTTP failures are retried with exponential backoff
- A lookup that still fails yields None fields, never fabricated values

API Details:
- /properties returns {"yearBuilt", "architecturalStyle", "footprint", "coordinates": {"lat", "lng"}}
- /neighborhoods returns {"roofAreas": [...], "commonPitches": [...], "typicalComplexity"}
- 404 means the address is unknown to the provider
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
import structlog
from pydantic import ValidationError as PydanticValidationError

from config.errors import ErrorCode
from config.secrets import get_property_data_api_key
from config.settings import settings
from models.inputs import Coordinates, NeighborhoodContext, PropertyContext

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Plausible single-family roof areas (sq ft); samples outside are dropped
MIN_PLAUSIBLE_ROOF_AREA = 500.0
MAX_PLAUSIBLE_ROOF_AREA = 15000.0

# Fewer samples than this do not describe a neighborhood
MIN_NEIGHBORHOOD_SAMPLES = 3

# Relative deviation above which an area is unusual for its neighborhood
UNUSUAL_DEVIATION_THRESHOLD = 0.3

DEFAULT_TYPICAL_COMPLEXITY = 0.5


# =============================================================================
# Neighborhood statistics
# =============================================================================


def summarize_neighborhood(
    roof_areas: List[float],
    common_pitches: Optional[List[str]] = None,
    typical_complexity: Optional[float] = None,
) -> Optional[NeighborhoodContext]:
    """
    Build neighborhood context from nearby roof areas.

    Args:
        roof_areas: Roof areas (sq ft) of nearby properties
        common_pitches: Most common pitches nearby
        typical_complexity: Typical complexity score (0-1)

    Returns:
        NeighborhoodContext, or None if fewer than three plausible samples
    """
    plausible = [
        float(area) for area in roof_areas
        if MIN_PLAUSIBLE_ROOF_AREA < area < MAX_PLAUSIBLE_ROOF_AREA
    ]

    if len(plausible) < MIN_NEIGHBORHOOD_SAMPLES:
        logger.info(
            "neighborhood_insufficient_samples",
            samples=len(roof_areas),
            plausible=len(plausible),
        )
        return None

    return NeighborhoodContext(
        average_roof_area=round(sum(plausible) / len(plausible)),
        common_pitches=list(common_pitches or []),
        typical_complexity=(
            typical_complexity if typical_complexity is not None else DEFAULT_TYPICAL_COMPLEXITY
        ),
        sample_size=len(plausible),
    )


def is_unusual_for_neighborhood(area: float, neighborhood: NeighborhoodContext) -> bool:
    """Flag an area deviating more than 30% from the neighborhood average."""
    return neighborhood.deviation(area) > UNUSUAL_DEVIATION_THRESHOLD


# =============================================================================
# Property data API
# =============================================================================


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
    reraise=True,
)
async def _fetch_property_data(
    client: httpx.AsyncClient,
    path: str,
    address: str,
) -> Optional[Dict[str, Any]]:
    """
    Fetch one property-data resource with retry logic.

    Args:
        client: Configured AsyncClient (base URL, auth, timeout)
        path: Resource path, e.g. "/properties"
        address: Property address

    Returns:
        Decoded JSON object, or None when the provider has no record

    Raises:
        httpx.HTTPError: On HTTP errors after retries
        httpx.TimeoutException: On timeout after retries
        ValueError: If the body is not JSON (not retried)
    """
    response = await client.get(path, params={"address": address})
    if response.status_code == 404:
        return None
    response.raise_for_status()
    data = response.json()
    return data if isinstance(data, dict) else None


class PropertyContextService:
    """Best-effort property and neighborhood lookups."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize PropertyContextService.

        Args:
            base_url: Property-data API root (default from settings).
            api_key: Bearer token (default from secrets).
            timeout: Request timeout in seconds (default from settings).
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url or settings.property_data_url
        self.api_key = api_key or (get_property_data_api_key() if self.base_url else None)
        self.timeout = timeout or settings.property_data_timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.base_url is not None

    def _create_client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def lookup(self, address: str) -> PropertyContext:
        """
        Look up building context for an address.

        Args:
            address: Property address

        Returns:
            PropertyContext; fields the provider could not supply are None
        """
        if not self.is_configured:
            logger.info("property_lookup_skipped", address=address, reason="not_configured")
            return PropertyContext()

        start_time = time.perf_counter()
        async with self._create_client() as client:
            property_record, neighborhood_record = await asyncio.gather(
                self._safe_fetch(client, "/properties", address),
                self._safe_fetch(client, "/neighborhoods", address),
            )

        context = PropertyContext(
            coordinates=_parse_coordinates(property_record),
            footprint_data=_get_str(property_record, "footprint"),
            building_age=_parse_year(property_record),
            architectural_style=_get_str(property_record, "architecturalStyle"),
            neighborhood_context=_parse_neighborhood(neighborhood_record),
        )

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "property_lookup_complete",
            address=address,
            has_footprint=context.footprint_data is not None,
            building_age=context.building_age,
            architectural_style=context.architectural_style,
            has_neighborhood=context.neighborhood_context is not None,
            latency_ms=round(latency_ms, 2),
        )
        return context

    async def _safe_fetch(
        self,
        client: httpx.AsyncClient,
        path: str,
        address: str,
    ) -> Optional[Dict[str, Any]]:
        try:
            return await _fetch_property_data(client, path, address)
        except (httpx.HTTPError, httpx.TimeoutException) as e:
            logger.warning(
                "property_lookup_failed",
                address=address,
                code=ErrorCode.PROPERTY_LOOKUP_FAILED,
                path=path,
                error=str(e),
            )
            return None
        except ValueError as e:
            # Body is not JSON
            logger.warning(
                "property_response_invalid",
                address=address,
                code=ErrorCode.PROPERTY_LOOKUP_FAILED,
                path=path,
                error=str(e),
            )
            return None


# =============================================================================
# Response parsing
# =============================================================================


def _get_str(record: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not record:
        return None
    value = record.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_year(record: Optional[Dict[str, Any]]) -> Optional[int]:
    if not record:
        return None
    value = record.get("yearBuilt")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    year = int(value)
    # Reject placeholder years some providers emit for unknown records
    return year if 1600 <= year <= 2100 else None


def _parse_coordinates(record: Optional[Dict[str, Any]]) -> Optional[Coordinates]:
    if not record or not isinstance(record.get("coordinates"), dict):
        return None
    try:
        return Coordinates.model_validate(record["coordinates"])
    except PydanticValidationError:
        logger.warning("property_coordinates_invalid", coordinates=record["coordinates"])
        return None


def _get_list(record: Dict[str, Any], key: str) -> List[Any]:
    value = record.get(key)
    return value if isinstance(value, list) else []


def _parse_neighborhood(record: Optional[Dict[str, Any]]) -> Optional[NeighborhoodContext]:
    if not record:
        return None
    areas = [
        a for a in _get_list(record, "roofAreas")
        if isinstance(a, (int, float)) and not isinstance(a, bool)
    ]
    complexity = record.get("typicalComplexity")
    if not isinstance(complexity, (int, float)) or not 0 <= complexity <= 1:
        complexity = None
    pitches = [p for p in _get_list(record, "commonPitches") if isinstance(p, str)]
    return summarize_neighborhood(areas, pitches, complexity)
