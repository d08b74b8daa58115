"""
Run a consensus roof prediction for one address and print it as JSON.

Both estimators call the LLM, so OPENAI_API_KEY must be set (environment
or .env). Property lookups are used when PROPERTY_DATA_URL is configured.

Usage:
  cd functions
  python scripts/run_prediction.py --address "123 Main St, Springfield, IL"
  python scripts/run_prediction.py --address "..." --image roof.png --out prediction.json
  python scripts/run_prediction.py --address "..." --verbose
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.errors import ConsensusError, RoofEstimateError  # noqa: E402
from config.settings import settings  # noqa: E402
from consensus.engine import ConsensusEngine  # noqa: E402
from services.prediction_service import PredictionService  # noqa: E402

# Configure logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.log_level.upper())
    ),
)
logger = structlog.get_logger()


async def run(address: str, image_path: Optional[str], verbose: bool = False) -> dict:
    image_data = Path(image_path).read_bytes() if image_path else None
    service = PredictionService(engine=ConsensusEngine(verbose=verbose))
    result = await service.predict(address, image_data)
    return {
        "address": address,
        "result": result.model_dump(mode="json", by_alias=True),
        "metrics": service.engine.get_metrics().model_dump(by_alias=True),
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a dual-estimator roof consensus prediction")
    parser.add_argument("--address", required=True, help="Property address")
    parser.add_argument("--image", required=False, help="Overhead image file (PNG or JPEG)")
    parser.add_argument("--out", required=False, help="Write JSON here instead of stdout")
    parser.add_argument("--verbose", action="store_true", help="Also log the full result JSON")
    args = parser.parse_args()

    try:
        settings.validate()
    except ValueError as e:
        print(str(e))
        return 2

    try:
        output = asyncio.run(run(args.address, args.image, args.verbose))
    except ConsensusError as e:
        logger.error("prediction_failed", **e.to_dict())
        print(json.dumps({"error": e.to_dict(), "retryable": e.is_retryable}, indent=2))
        return 1
    except RoofEstimateError as e:
        print(json.dumps({"error": e.to_dict()}, indent=2))
        return 1

    text = json.dumps(output, indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Wrote {args.out}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
