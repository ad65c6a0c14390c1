#!/usr/bin/env python
"""
Search a Remote Folder for a Face

Finds the photos of a shared folder that contain the face of a reference
photo and writes them to a zip archive.

Usage:
    python -m facesearch.cli.search_folder <reference.jpg> <folder_link> [--output images.zip]
"""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from facesearch.core.config import settings
from facesearch.core.container import create_face_service, create_storage
from facesearch.core.exceptions import ExtractionFailedError, FaceSearchError
from facesearch.core.logging import get_logger, setup_logging
from facesearch.domain.value_objects.run import ProgressEvent, ResultEvent, TotalEvent
from facesearch.services.archive import build_archive
from facesearch.services.batch_scheduler import BatchScheduler
from facesearch.services.folder_enumerator import FolderEnumerator
from facesearch.services.match_evaluator import MatchEvaluator
from facesearch.services.reference_extractor import ReferenceExtractor
from facesearch.services.run_aggregator import RunAggregator

logger = get_logger(__name__)


async def search_folder(
    reference_path: str,
    folder_link: str,
    output_path: str,
    batch_size: Optional[int] = None,
    delay_ms: Optional[int] = None,
    min_confidence: Optional[float] = None,
    threshold: Optional[float] = None,
) -> int:
    """
    Search a folder for the face in ``reference_path``.

    Args:
        reference_path: Path of the reference photo
        folder_link: Shareable link of the folder to search
        output_path: Where to write the zip archive of matches
        batch_size: Files evaluated concurrently
        delay_ms: Pause between batches in milliseconds
        min_confidence: Detection confidence floor
        threshold: Maximum descriptor distance of a match

    Returns:
        Process exit code
    """
    reference_file = Path(reference_path)
    if not reference_file.exists():
        logger.error("Reference photo not found", path=reference_path)
        return 1

    storage = create_storage()
    try:
        face_service = create_face_service()
        extractor = ReferenceExtractor(face_service)
        try:
            reference = await extractor.extract_reference(
                reference_file.read_bytes(), reference_file.name
            )
        except ExtractionFailedError as e:
            logger.error("Cannot read reference photo", error=str(e))
            return 1
        if reference is None:
            logger.error("Cannot detect face in selected photo", path=reference_path)
            return 1

        scheduler = BatchScheduler(
            FolderEnumerator(storage),
            MatchEvaluator(
                storage,
                face_service,
                min_confidence=min_confidence,
                distance_threshold=threshold,
            ),
            batch_size=batch_size,
            batch_delay=None if delay_ms is None else delay_ms / 1000,
        )
        aggregator = RunAggregator()
        generation = aggregator.start_run(reference)

        with tqdm(total=0, unit="photo", desc="Searching") as progress:
            async for event in scheduler.run(folder_link, reference, generation):
                aggregator.apply_event(event)
                if isinstance(event, TotalEvent):
                    progress.total += event.count
                    progress.refresh()
                elif isinstance(event, ProgressEvent):
                    progress.update(1)
                elif isinstance(event, ResultEvent):
                    progress.set_postfix(matches=len(aggregator.current_state().results))
    finally:
        await storage.close()

    state = aggregator.current_state()
    if state.results:
        Path(output_path).write_bytes(build_archive(state.results))
        logger.info("Wrote matching photos", path=output_path, matches=len(state.results))
    else:
        logger.info("No matching photos found", processed=state.processed_count)

    if state.status == "failed":
        logger.error("Search failed", error=state.error)
        return 1
    return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Find the photos of a shared folder that contain a given face"
    )
    parser.add_argument("reference", help="Path of the photo with the face to search for")
    parser.add_argument("folder_link", help="Public link of the folder to search")
    parser.add_argument(
        "--output", "-o",
        default=settings.ARCHIVE_NAME,
        help=f"Zip archive for the matches (default: {settings.ARCHIVE_NAME})"
    )
    parser.add_argument("--batch-size", type=int, help="Files evaluated concurrently")
    parser.add_argument("--delay-ms", type=int, help="Pause between batches in milliseconds")
    parser.add_argument("--min-confidence", type=float, help="Face detection confidence floor")
    parser.add_argument("--threshold", type=float, help="Maximum face descriptor distance")
    args = parser.parse_args()

    setup_logging()
    try:
        exit_code = asyncio.run(search_folder(
            args.reference,
            args.folder_link,
            args.output,
            batch_size=args.batch_size,
            delay_ms=args.delay_ms,
            min_confidence=args.min_confidence,
            threshold=args.threshold,
        ))
    except ValueError as e:
        logger.error("Invalid search options", error=str(e))
        exit_code = 2
    except FaceSearchError as e:
        logger.error("Search failed", error=str(e), exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
