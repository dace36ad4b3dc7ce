"""One-shot demo: retrieve -> assemble context -> ask the model -> print sources."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from video_persona.config import AppConfig  # noqa: E402
from video_persona.errors import VideoPersonaError  # noqa: E402
from video_persona.pipeline import PersonaChatPipeline  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask the video persona a single question.")
    parser.add_argument("message", help="Question to ask.")
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "config.yaml"),
        help="Path to YAML config.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = AppConfig.from_yaml(args.config)
    logging.basicConfig(level=config.logging.level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    with PersonaChatPipeline(config) as pipeline:
        try:
            result = pipeline.chat(args.message)
        except VideoPersonaError as exc:
            print(f"Request failed: {exc}")
            sys.exit(1)

    print("== Response ==")
    print(result.response)
    print("\n== Sources ==")
    if not result.sources:
        print("No sources found.")
    for i, source in enumerate(result.sources, start=1):
        print(f"{i}. {source.id} score={source.score} {source.summary[:100]}")


if __name__ == "__main__":
    main()
