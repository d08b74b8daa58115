"""Estimator input construction for RoofEstimate.

Builds the vision and geometry inputs for one prediction from the caller's
address and optional image, the wall clock, and best-effort property
context lookups.
"""

import base64
from datetime import datetime
from typing import Optional, Union

from models.inputs import (
    GeometryInput,
    PropertyContext,
    Season,
    TimeOfDay,
    VisionInput,
)


ImageData = Union[bytes, str]

IMAGE_QUALITY_WITH_IMAGE = 0.85
IMAGE_QUALITY_WITHOUT_IMAGE = 0.6

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def assess_image_quality(image_data: Optional[ImageData]) -> float:
    """Heuristic image quality: 0.85 when an image is supplied, else 0.6."""
    return IMAGE_QUALITY_WITH_IMAGE if image_data else IMAGE_QUALITY_WITHOUT_IMAGE


def detect_season(now: datetime) -> Season:
    """Season by month: Mar-May spring, Jun-Aug summer, Sep-Nov fall."""
    month = now.month
    if 3 <= month <= 5:
        return Season.SPRING
    if 6 <= month <= 8:
        return Season.SUMMER
    if 9 <= month <= 11:
        return Season.FALL
    return Season.WINTER


def detect_time_of_day(now: datetime) -> TimeOfDay:
    """Before noon is morning, before 17:00 afternoon, otherwise evening."""
    if now.hour < 12:
        return TimeOfDay.MORNING
    if now.hour < 17:
        return TimeOfDay.AFTERNOON
    return TimeOfDay.EVENING


def encode_image(image_data: Optional[ImageData]) -> Optional[str]:
    """Render image bytes as a base64 data URL.

    Strings are assumed to already be a data URL or remote URL and pass
    through unchanged.
    """
    if not image_data:
        return None
    if isinstance(image_data, str):
        return image_data
    mime_type = "image/png" if image_data.startswith(PNG_SIGNATURE) else "image/jpeg"
    encoded = base64.b64encode(image_data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def build_vision_input(
    address: str,
    image_data: Optional[ImageData],
    now: datetime,
    context: Optional[PropertyContext] = None
) -> VisionInput:
    """Vision input with image-quality, season and time-of-day heuristics."""
    return VisionInput(
        address=address,
        image_data=encode_image(image_data),
        coordinates=context.coordinates if context else None,
        image_quality=assess_image_quality(image_data),
        season=detect_season(now),
        time_of_day=detect_time_of_day(now)
    )


def build_geometry_input(address: str, context: Optional[PropertyContext] = None) -> GeometryInput:
    """Geometry input from whatever the property lookups returned."""
    context = context or PropertyContext()
    return GeometryInput(
        address=address,
        footprint_data=context.footprint_data,
        building_age=context.building_age,
        architectural_style=context.architectural_style,
        neighborhood_context=context.neighborhood_context
    )
