"""Roof analysis backends for RoofEstimate.

Both external analysis backends (image analysis for the vision estimator,
structural analysis for the geometry estimator) are served by the LLM.
Responses go through a strict parse into RoofAnalysis; anything that
fails, from the LLM call to schema validation, surfaces as BackendError.

No retries happen here. Retry policy belongs to the caller.
"""

import json
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from config.errors import BackendError, ErrorCode, RoofEstimateError
from config.settings import settings
from models.analysis import RoofAnalysis
from models.inputs import GeometryInput, VisionInput
from services.llm_service import LLMService

logger = structlog.get_logger()


VISION_ESTIMATOR = "vision"
GEOMETRY_ESTIMATOR = "geometry"


# =============================================================================
# PROMPTS
# =============================================================================

RESPONSE_SCHEMA = """{
  "totalArea": number (square feet, > 0),
  "confidence": number (0-1),
  "facets": [
    {
      "id": string,
      "polygon": [[x, y], [x, y], [x, y], ...] (at least 3 points, feet),
      "area": number (square feet),
      "pitch": string (rise/run, e.g. "6/12"),
      "type": "main" | "dormer" | "addition" | "garage" | "wing",
      "confidence": number (0-1),
      "notes": string
    }
  ],
  "measurements": {
    "ridges": number (ft),
    "valleys": number (ft),
    "hips": number (ft),
    "rakes": number (ft),
    "eaves": number (ft),
    "gutters": number (ft),
    "stepFlashing": number (ft),
    "dripEdge": number (ft)
  },
  "propertyDetails": {
    "stories": number,
    "chimneys": number,
    "skylights": number,
    "vents": number,
    "structureComplexity": "Simple" | "Moderate" | "Complex"
  },
  "reportSummary": {
    "roofComplexityScore": number (0-1),
    "averagePitch": string,
    "totalPerimeter": number (ft)
  }
}"""


VISION_SYSTEM_PROMPT = f"""You are a professional roof measurement analyst working from overhead imagery.

Identify every planar roof facet visible in the image, trace its outline,
and estimate its area and pitch. Measure the linear roof features.

Guidelines:
- Simple homes have 2-4 facets; complex homes 6-15 or more.
- Dormers are small and easy to miss from overhead; report them only when visible.
- Lower your confidence when shadows, trees or snow obscure roof edges.

Return a JSON object with this structure:
{RESPONSE_SCHEMA}"""


GEOMETRY_SYSTEM_PROMPT = f"""You are a structural roof analyst working from building footprints and property records.

Infer the roof geometry from the footprint, building age, architectural style
and neighborhood statistics provided. Break the roof into planar facets with
outlines, areas and pitches, and estimate the linear roof features.

Guidelines:
- Roof area exceeds footprint area by the pitch factor plus overhangs.
- Older buildings often have steeper pitches and non-standard construction.
- Use neighborhood statistics as a sanity check, not as the answer.

Return a JSON object with this structure:
{RESPONSE_SCHEMA}"""


class RoofAnalysisService:
    """Client for the image-analysis and structural-analysis backends."""

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        max_tokens: Optional[int] = None
    ):
        """Initialize RoofAnalysisService.

        Args:
            llm_service: Optional LLM service (created on first use if None).
            max_tokens: Response token cap (default from settings).
        """
        self._llm = llm_service
        self.max_tokens = max_tokens or settings.analysis_max_tokens

    @property
    def llm(self) -> LLMService:
        """Get LLM service (lazy initialization)."""
        if self._llm is None:
            self._llm = LLMService()
        return self._llm

    async def analyze_image(self, vision_input: VisionInput) -> RoofAnalysis:
        """Run the image-analysis backend.

        Args:
            vision_input: Address, image and capture metadata.

        Returns:
            Parsed RoofAnalysis.

        Raises:
            BackendError: If the call fails or the response does not parse.
        """
        context = {
            "address": vision_input.address,
            "hasImage": vision_input.image_data is not None,
            "imageQuality": vision_input.image_quality,
            "season": vision_input.season,
            "timeOfDay": vision_input.time_of_day,
        }
        if vision_input.coordinates is not None:
            context["coordinates"] = vision_input.coordinates.model_dump()

        user_message = (
            f"Analyze the roof of the property at \"{vision_input.address}\".\n\n"
            f"Capture context:\n{json.dumps(context, indent=2)}"
        )
        if vision_input.image_data is None:
            user_message += "\n\nNo image is attached; estimate from the address and context alone."

        return await self._analyze(
            VISION_ESTIMATOR,
            VISION_SYSTEM_PROMPT,
            user_message,
            image_url=vision_input.image_data
        )

    async def analyze_structure(self, geometry_input: GeometryInput) -> RoofAnalysis:
        """Run the structural-analysis backend.

        Args:
            geometry_input: Address, footprint and building context.

        Returns:
            Parsed RoofAnalysis.

        Raises:
            BackendError: If the call fails or the response does not parse.
        """
        building_context: Dict[str, Any] = {
            "age": geometry_input.building_age,
            "style": geometry_input.architectural_style,
            "neighborhood": (
                geometry_input.neighborhood_context.model_dump(by_alias=True)
                if geometry_input.neighborhood_context is not None
                else None
            ),
        }

        user_message = (
            f"Analyze the roof structure of the property at \"{geometry_input.address}\".\n\n"
            f"Footprint data:\n{geometry_input.footprint_data or 'not available'}\n\n"
            f"Building context:\n{json.dumps(building_context, indent=2)}"
        )

        return await self._analyze(GEOMETRY_ESTIMATOR, GEOMETRY_SYSTEM_PROMPT, user_message)

    async def _analyze(
        self,
        estimator: str,
        system_prompt: str,
        user_message: str,
        image_url: Optional[str] = None
    ) -> RoofAnalysis:
        """Call the LLM and parse its JSON into a RoofAnalysis."""
        logger.info("roof_analysis_requested", estimator=estimator, has_image=image_url is not None)

        try:
            result = await self.llm.generate_json(
                system_prompt,
                user_message,
                max_tokens=self.max_tokens,
                image_url=image_url
            )
        except RoofEstimateError as e:
            logger.error("roof_analysis_failed", estimator=estimator, code=e.code, error=e.message)
            raise BackendError(
                estimator=estimator,
                message=f"{estimator} analysis backend failed: {e.message}",
                details={"cause_code": e.code}
            ) from e

        return parse_analysis(estimator, result["content"])


def parse_analysis(estimator: str, payload: Any) -> RoofAnalysis:
    """Validate a backend payload into a RoofAnalysis.

    Args:
        estimator: Name of the estimator the payload belongs to.
        payload: Decoded JSON from the backend.

    Returns:
        Parsed RoofAnalysis.

    Raises:
        BackendError: With BACKEND_INVALID_RESPONSE if the payload is not
            an object or does not match the schema.
    """
    if not isinstance(payload, dict):
        raise BackendError(
            estimator=estimator,
            message=f"{estimator} analysis backend returned {type(payload).__name__}, expected an object",
            code=ErrorCode.BACKEND_INVALID_RESPONSE
        )

    try:
        analysis = RoofAnalysis.model_validate(payload)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(loc) for loc in err["loc"]), "error": err["msg"]}
            for err in e.errors()
        ]
        logger.error("roof_analysis_invalid", estimator=estimator, errors=errors[:10])
        raise BackendError(
            estimator=estimator,
            message=f"{estimator} analysis backend returned an invalid response",
            code=ErrorCode.BACKEND_INVALID_RESPONSE,
            details={"errors": errors}
        ) from e

    logger.info(
        "roof_analysis_parsed",
        estimator=estimator,
        total_area=analysis.total_area,
        facet_count=len(analysis.facets)
    )
    return analysis
