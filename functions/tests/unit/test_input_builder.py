"""Unit tests for estimator input construction."""

import base64
from datetime import datetime

import pytest

from consensus.input_builder import (
    assess_image_quality,
    build_geometry_input,
    build_vision_input,
    detect_season,
    detect_time_of_day,
    encode_image,
)
from models.inputs import PropertyContext, Season, TimeOfDay
from tests.fixtures.mock_backend_data import SAMPLE_PROPERTY_CONTEXT


class TestHeuristics:
    """Tests for clock and image heuristics."""

    @pytest.mark.parametrize("month,season", [
        (1, Season.WINTER),
        (2, Season.WINTER),
        (3, Season.SPRING),
        (5, Season.SPRING),
        (6, Season.SUMMER),
        (8, Season.SUMMER),
        (9, Season.FALL),
        (11, Season.FALL),
        (12, Season.WINTER),
    ])
    def test_detect_season(self, month, season):
        assert detect_season(datetime(2025, month, 15)) == season

    @pytest.mark.parametrize("hour,time_of_day", [
        (0, TimeOfDay.MORNING),
        (11, TimeOfDay.MORNING),
        (12, TimeOfDay.AFTERNOON),
        (16, TimeOfDay.AFTERNOON),
        (17, TimeOfDay.EVENING),
        (23, TimeOfDay.EVENING),
    ])
    def test_detect_time_of_day(self, hour, time_of_day):
        assert detect_time_of_day(datetime(2025, 6, 1, hour, 30)) == time_of_day

    def test_assess_image_quality(self):
        assert assess_image_quality(b"\xff\xd8jpeg") == 0.85
        assert assess_image_quality("https://tiles.example.com/roof.png") == 0.85
        assert assess_image_quality(None) == 0.6
        assert assess_image_quality(b"") == 0.6


class TestEncodeImage:
    """Tests for encode_image."""

    def test_png_bytes(self):
        data = b"\x89PNG\r\n\x1a\n" + b"pixels"

        encoded = encode_image(data)

        assert encoded == "data:image/png;base64," + base64.b64encode(data).decode("ascii")

    def test_other_bytes_default_to_jpeg(self):
        assert encode_image(b"\xff\xd8\xff\xe0").startswith("data:image/jpeg;base64,")

    def test_strings_pass_through(self):
        assert encode_image("https://tiles.example.com/roof.png") == "https://tiles.example.com/roof.png"

    def test_missing_image(self):
        assert encode_image(None) is None
        assert encode_image(b"") is None


class TestBuildInputs:
    """Tests for the input builders."""

    def test_vision_input(self):
        vision_input = build_vision_input(
            "1 Oak Ln",
            b"\xff\xd8\xff",
            datetime(2025, 12, 20, 18, 0),
            SAMPLE_PROPERTY_CONTEXT
        )

        assert vision_input.address == "1 Oak Ln"
        assert vision_input.image_quality == 0.85
        assert vision_input.season == "winter"
        assert vision_input.time_of_day == "evening"
        assert vision_input.coordinates == SAMPLE_PROPERTY_CONTEXT.coordinates
        assert vision_input.image_data.startswith("data:image/jpeg;base64,")

    def test_vision_input_without_context(self):
        vision_input = build_vision_input("1 Oak Ln", None, datetime(2025, 7, 1, 13, 0))

        assert vision_input.image_quality == 0.6
        assert vision_input.image_data is None
        assert vision_input.coordinates is None

    def test_geometry_input(self):
        geometry_input = build_geometry_input("1 Oak Ln", SAMPLE_PROPERTY_CONTEXT)

        assert geometry_input.building_age == 1985
        assert geometry_input.architectural_style == "Colonial"
        assert geometry_input.footprint_data == SAMPLE_PROPERTY_CONTEXT.footprint_data
        assert geometry_input.neighborhood_context.average_roof_area == 2200

    def test_geometry_input_with_missing_lookups(self):
        for context in (None, PropertyContext()):
            geometry_input = build_geometry_input("1 Oak Ln", context)

            assert geometry_input.footprint_data is None
            assert geometry_input.building_age is None
            assert geometry_input.architectural_style is None
            assert geometry_input.neighborhood_context is None
