"""
Live Recorder - command line entry point.

Records a live HLS stream until it ends or the user stops it:
1. Check that the playlist is live (or a master playlist)
2. Poll for new segments and download them in batches
3. Concatenate the batches into one file and remove scratch files
"""

import argparse
import asyncio
import signal
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from .config import Config, FileSettingsProvider, StaticSettings, load_config
from .events import SessionEvent, SessionUpdate
from .http_client import FetchError, HttpClient
from .logger import get_logger, setup_logging
from .naming import base_name_from_url, clean_name, sanitize_filename, unique_filename
from .playlist import PlaylistKind, classify_playlist, parse_segment_uris
from .session import RecordingSession
from .storage import Storage, StoragePermissionError
from .tracker import Segment
from .transport import HttpSegmentTransport


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='liverecorder',
        description='Record a live HLS stream into a single file.'
    )
    parser.add_argument('url', help='Playlist URL (media or master playlist)')
    parser.add_argument('-o', '--output-dir', help='Directory for the recording')
    parser.add_argument('-n', '--name', help='Base name for the recording')
    parser.add_argument('-c', '--config', default='config.yaml', help='Path to config.yaml')
    parser.add_argument('--batch-size', type=int, help='Segments per batch')
    parser.add_argument('--threads', type=int, help='Parallel segment requests per batch')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING or ERROR')
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace, config: Config, config_found: bool):
    """Live settings from the config file, or fixed values when overridden."""
    if config_found and args.batch_size is None and args.threads is None:
        return FileSettingsProvider(args.config, fallback=config.recording)

    values = asdict(config.recording)
    if args.batch_size is not None:
        values['batch_size'] = max(1, args.batch_size)
    if args.threads is not None:
        values['live_threads'] = max(1, args.threads)
    return StaticSettings(values)


def log_progress(update: SessionUpdate) -> None:
    """Console progress for batch and lifecycle events."""
    logger = get_logger('app')
    if update.event == SessionEvent.BATCH_FINISHED:
        logger.info(
            f"Segments: {update.total_segments} | Batches: {update.batch_count} | "
            f"Pending: {update.pending_segments} | Duration: {update.duration}"
        )
    elif update.event == SessionEvent.STOPPING and update.message:
        logger.info(update.message)


async def record(args: argparse.Namespace, config: Config, config_found: bool) -> int:
    """Run one recording. Returns the process exit code."""
    logger = get_logger('app')
    url = args.url

    async with HttpClient(
        user_agent=config.http.user_agent,
        request_timeout=config.http.request_timeout
    ) as client:
        try:
            text = await client.fetch_text(url)
        except FetchError as e:
            logger.error(f"Cannot fetch playlist: {e}")
            return 1

        kind = classify_playlist(text)
        if kind == PlaylistKind.CLOSED:
            logger.error("Playlist has ended or is VOD, nothing live to record")
            return 1

        initial = []
        if kind == PlaylistKind.LIVE:
            initial = [Segment.from_uri(uri, url) for uri in parse_segment_uris(text)]

        name = clean_name(args.name) if args.name else base_name_from_url(url)
        output_dir = Path(args.output_dir or config.recording.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        filename = unique_filename(output_dir, sanitize_filename(f"{name}.ts"))

        session = RecordingSession(
            url=url,
            name=name,
            storage=Storage(output_dir),
            client=client,
            transport=HttpSegmentTransport(client, retries=config.recording.segment_retries),
            settings=build_settings(args, config, config_found),
            codec=config.recording.codec,
            poll_interval=config.recording.poll_interval,
            duration_interval=config.recording.duration_interval,
            batch_timeout=config.recording.batch_timeout
        )
        session.subscribe(log_progress)

        try:
            await session.start(initial, output_dir / filename)
        except StoragePermissionError as e:
            logger.error(f"Directory access required: {e}")
            return 1

        logger.info(f"Recording: {filename} (Ctrl+C to stop and save)")

        # A termination signal counts as the stop confirmation
        loop = asyncio.get_running_loop()
        stop_tasks = []

        def on_signal() -> None:
            if not stop_tasks:
                stop_tasks.append(asyncio.create_task(session.request_stop(confirm=lambda: True)))

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, on_signal)

        try:
            result = await session.wait_done()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    logger.info(
        f"Saved {result.output_path}: {result.total_segments} segments, "
        f"{result.batch_count} batches ({result.failed_batches} failed, {result.lost_segments} segments lost), "
        f"{result.file_size_formatted}, {result.duration_formatted}"
    )
    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    config_found = Path(args.config).exists()
    try:
        config = load_config(args.config) if config_found else Config()
    except Exception as e:
        print(f"Configuration error: {e}")
        return 1

    setup_logging(
        level=args.log_level or config.logging.level,
        log_file=config.logging.file,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count
    )

    try:
        return await record(args, config, config_found)
    except Exception as e:
        get_logger('app').error(f"Fatal error: {e}")
        raise


def run() -> None:
    """Console script entry."""
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
