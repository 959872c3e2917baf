"""
Finalization for Live Recorder.
Joins batch files into the recording and removes the scratch files.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List

from .batch import Batch
from .logger import get_logger


@dataclass
class ConcatResult:
    """Outcome of joining batch files."""
    written: int = 0
    skipped: int = 0
    bytes_written: int = 0
    lost_segments: int = 0   # segments inside skipped batches


async def concatenate_batches(storage, batches: List[Batch], output_path: Path, logger=None) -> ConcatResult:
    """
    Append every usable batch file to ``output_path`` in sequence order.

    Batches that failed, are empty or cannot be read are skipped and
    counted. The output is always closed, even if every batch is skipped.
    """
    logger = logger or get_logger('finalize')
    result = ConcatResult()
    logger.info(f"Concatenating {len(batches)} batches...")

    writer = await storage.open_write(output_path)
    try:
        for batch in sorted(batches, key=lambda b: b.sequence_number):
            if not batch.succeeded:
                logger.warning(f"Skipping failed batch: {batch.name}")
                result.skipped += 1
                result.lost_segments += len(batch.segments)
                continue

            try:
                size = await storage.file_size(batch.path)
                if size == 0:
                    logger.warning(f"Skipping empty batch: {batch.name}")
                    result.skipped += 1
                    result.lost_segments += len(batch.segments)
                    continue

                data = await storage.read_file(batch.path)
            except OSError as e:
                logger.error(f"Failed to read {batch.name}: {e}")
                result.skipped += 1
                result.lost_segments += len(batch.segments)
                continue

            await writer.write(data)
            result.written += 1
            result.bytes_written += len(data)
            logger.info(f"Concatenated {batch.name} ({len(data) / 1024 / 1024:.2f} MB)")
    finally:
        await writer.close()

    logger.info(f"Concatenation complete: {result.written} batches, {result.skipped} skipped")
    return result


async def cleanup_batches(storage, batches: List[Batch], scratch_dir: Path, logger=None) -> int:
    """
    Delete batch files, then try to remove the scratch directory.

    Returns:
        Number of batch files removed.
    """
    logger = logger or get_logger('finalize')
    logger.info("Cleaning up...")
    removed = 0

    for batch in batches:
        try:
            await storage.remove_entry(scratch_dir, batch.name)
            removed += 1
        except OSError as e:
            logger.warning(f"Failed to delete {batch.name}: {e}")

    try:
        await storage.remove_entry(scratch_dir.parent, scratch_dir.name)
    except OSError:
        # Directory not empty is OK
        logger.debug(f"Kept scratch directory {scratch_dir}")

    return removed
