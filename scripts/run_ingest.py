"""CLI entrypoint for indexing a directory of analyzed video records into Chroma."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from video_persona.config import AppConfig  # noqa: E402
from video_persona.embeddings import ChromaIndex  # noqa: E402
from video_persona.retrieval import ScanSource  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index analyzed video records into Chroma.")
    parser.add_argument(
        "--config",
        type=str,
        default=str(PROJECT_ROOT / "config.yaml"),
        help="Path to YAML config.",
    )
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Directory of <id>.json records (defaults to paths.dataset_dir).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = AppConfig.from_yaml(args.config)
    logging.basicConfig(level=config.logging.level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    records = ScanSource(args.input or config.paths.dataset_dir).list_records()
    index = ChromaIndex(config.index, config.paths.chroma_dir)
    try:
        written = index.upsert_records(records)
        total = index.count()
    finally:
        index.close()

    print("Indexing complete.")
    print(f"records_loaded: {len(records)}")
    print(f"records_indexed: {written}")
    print(f"collection_total: {total}")


if __name__ == "__main__":
    main()
