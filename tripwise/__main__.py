"""Command-line entry point: run one suggestion request and print the JSON response.

    python -m tripwise --place-name "Eiffel Tower" --lat 48.8584 --lng 2.2945 \
        --persona art_enthusiast "Anything quiet nearby?"

    python -m tripwise --request request.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from tripwise.data.personas import PersonaType
from tripwise.errors import AgentError
from tripwise.logging_config import configure_logging
from tripwise.schemas.agent import SuggestionRequest

logger = logging.getLogger("tripwise")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tripwise",
        description="Suggest attractions and restaurants near a place in a travel plan.",
    )
    parser.add_argument("message", nargs="?", help="Free-text request (default: generic suggestion ask)")
    parser.add_argument("--request", type=Path, help="JSON file holding a full SuggestionRequest")
    parser.add_argument("--place-id", default="cli-place")
    parser.add_argument("--place-name", help="Name of the place being planned")
    parser.add_argument("--lat", type=float, help="Map center latitude")
    parser.add_argument("--lng", type=float, help="Map center longitude")
    parser.add_argument(
        "--persona",
        action="append",
        default=[],
        choices=[p.value for p in PersonaType],
        help="Active traveler persona (repeatable)",
    )
    return parser


def _load_request(args: argparse.Namespace, parser: argparse.ArgumentParser) -> SuggestionRequest:
    if args.request:
        request = SuggestionRequest.model_validate_json(args.request.read_text(encoding="utf-8"))
        if args.message:
            request = request.model_copy(update={"user_message": args.message})
        return request

    if not args.place_name or args.lat is None or args.lng is None:
        parser.error("either --request or all of --place-name, --lat and --lng are required")

    return SuggestionRequest(
        place={"id": args.place_id, "name": args.place_name},
        map_coordinates={"lat": args.lat, "lng": args.lng},
        personas=args.persona,
        user_message=args.message,
    )


async def _run(request: SuggestionRequest) -> dict:
    # Imported here so settings load after logging is configured
    from tripwise.services.cache_service import cache_service
    from tripwise.services.places_client import places_client
    from tripwise.services.recommendation.suggestion_service import suggestion_service

    try:
        response = await suggestion_service.suggest(request)
        return response.to_wire()
    finally:
        await places_client.close()
        await cache_service.close()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    try:
        request = _load_request(args, parser)
    except (OSError, PydanticValidationError) as e:
        logger.error(f"Invalid request: {e}")
        print(f"Invalid request: {e}", file=sys.stderr)
        return 2

    try:
        result = asyncio.run(_run(request))
    except AgentError as e:
        print(e.user_message, file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
