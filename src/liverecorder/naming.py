"""
File naming helpers for recordings, batch files and scratch directories.
"""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse


MAX_FILENAME_LENGTH = 200


def clean_name(name: str) -> str:
    """Replace forbidden characters with underscores and collapse whitespace."""
    name = re.sub(r'[/\\:*?"<>|]', '_', name)
    return re.sub(r'\s+', ' ', name).strip()


def sanitize_filename(name: str, default_ext: str = "ts") -> str:
    """
    Make a name safe for the filesystem.

    Forbidden characters become underscores, whitespace runs collapse, the
    length is capped (keeping the extension) and an extension is added
    when missing.
    """
    filename = clean_name(name) or "Untitled"

    if len(filename) > MAX_FILENAME_LENGTH:
        ext = filename.rfind('.')
        if ext > 0:
            suffix = filename[ext:]
            filename = filename[:MAX_FILENAME_LENGTH - len(suffix)] + suffix
        else:
            filename = filename[:MAX_FILENAME_LENGTH]

    if '.' not in filename:
        filename += f".{default_ext}"

    return filename


def unique_filename(directory: Path, filename: str) -> str:
    """Append ' - N' before the extension until the name is unused."""
    directory = Path(directory)
    if not (directory / filename).exists():
        return filename

    stem, dot, ext = filename.rpartition('.')
    if not dot:
        stem, ext = filename, ''

    counter = 1
    while True:
        candidate = f"{stem} - {counter}.{ext}" if ext else f"{stem} - {counter}"
        if not (directory / candidate).exists():
            return candidate
        counter += 1


def base_name_from_url(url: str) -> str:
    """Derive a recording base name from the playlist URL."""
    parsed = urlparse(url)
    path = Path(unquote(parsed.path))
    stem = path.stem
    if not stem or stem in ('index', 'playlist', 'master', 'chunklist'):
        stem = path.parent.name or parsed.netloc
    return clean_name(stem)[:MAX_FILENAME_LENGTH] or "recording"


def batch_file_name(base_name: str, sequence_number: int) -> str:
    """Batch file name, e.g. ``show_007.ts``."""
    return f"{base_name}_{sequence_number:03d}.ts"


def scratch_dir_name(base_name: str, now: Optional[datetime] = None) -> str:
    """Per-session scratch directory name, unique per start time."""
    now = now or datetime.now(timezone.utc)
    return f"{base_name}_{now.strftime('%Y-%m-%dT%H-%M-%S')}_components"
