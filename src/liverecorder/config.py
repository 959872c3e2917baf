"""
Configuration module for Live Recorder.
Loads settings from YAML file and provides typed configuration.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .logger import get_logger


@dataclass
class RecordingConfig:
    """Recording settings."""
    output_dir: str = "./recordings"
    batch_size: int = 20            # segments per batch file
    live_threads: int = 1           # concurrent segment requests per batch
    thread_timeout: float = 30.0    # seconds per segment request
    segment_retries: int = 3        # attempts per segment before the batch fails
    batch_timeout: float = 600.0    # ceiling for one batch, catches a stalled transport
    poll_interval: float = 3.0      # seconds between manifest polls
    duration_interval: float = 1.0  # seconds between duration updates
    codec: str = "ts"               # container hint forwarded to the transport


@dataclass
class HttpConfig:
    """HTTP client settings."""
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) liverecorder"
    request_timeout: float = 15.0   # seconds for manifest requests


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    file: str = "./logs/recorder.log"
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration container."""
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        """Ensure directories exist."""
        Path(self.recording.output_dir).mkdir(parents=True, exist_ok=True)
        if self.logging.file:
            Path(self.logging.file).parent.mkdir(parents=True, exist_ok=True)


def as_bool(value: Any, default: bool) -> bool:
    """Parse bool from YAML value with safe fallbacks."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "y", "on"):
            return True
        if text in ("0", "false", "no", "n", "off"):
            return False
    return default


def as_float(value: Any, default: float) -> float:
    """Parse float from YAML value with safe fallbacks."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().replace(",", "."))
        except ValueError:
            return default
    return default


def as_int(value: Any, default: int) -> int:
    """Parse int from YAML value with safe fallbacks."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            return int(float(text.replace(",", ".")))
        except ValueError:
            return default
    return default


def _read_yaml(path: Path) -> dict:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return data or {}


def load_config(config_path: str = "config.yaml") -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        Config object with all settings.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If the file is empty or not a mapping.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Please create a config.yaml file. See config.example.yaml for reference."
        )

    data = _read_yaml(config_path)

    if not data:
        raise ValueError("Configuration file is empty")
    if not isinstance(data, dict):
        raise ValueError("Configuration file must contain a mapping")

    defaults = RecordingConfig()
    recording_data = data.get('recording', {}) or {}
    recording_config = RecordingConfig(
        output_dir=str(recording_data.get('output_dir', defaults.output_dir)),
        batch_size=max(1, as_int(recording_data.get('batch_size'), defaults.batch_size)),
        live_threads=max(1, as_int(recording_data.get('live_threads'), defaults.live_threads)),
        thread_timeout=max(1.0, as_float(recording_data.get('thread_timeout'), defaults.thread_timeout)),
        segment_retries=max(1, as_int(recording_data.get('segment_retries'), defaults.segment_retries)),
        batch_timeout=max(1.0, as_float(recording_data.get('batch_timeout'), defaults.batch_timeout)),
        poll_interval=max(0.5, as_float(recording_data.get('poll_interval'), defaults.poll_interval)),
        duration_interval=max(0.1, as_float(recording_data.get('duration_interval'), defaults.duration_interval)),
        codec=str(recording_data.get('codec', defaults.codec)),
    )

    http_defaults = HttpConfig()
    http_data = data.get('http', {}) or {}
    http_config = HttpConfig(
        user_agent=str(http_data.get('user_agent', http_defaults.user_agent)),
        request_timeout=max(1.0, as_float(http_data.get('request_timeout'), http_defaults.request_timeout)),
    )

    logging_data = data.get('logging', {}) or {}
    logging_config = LoggingConfig(
        level=logging_data.get('level', 'INFO'),
        file=logging_data.get('file', './logs/recorder.log'),
        max_size_mb=as_int(logging_data.get('max_size_mb'), 10),
        backup_count=as_int(logging_data.get('backup_count'), 5),
    )

    return Config(
        recording=recording_config,
        http=http_config,
        logging=logging_config
    )


class StaticSettings:
    """Flat key/value settings backed by a plain dict."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values = dict(values or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class FileSettingsProvider:
    """
    Live settings read from the ``recording`` section of a YAML file.

    The file is re-read whenever its modification time changes, so edits
    made while a recording runs apply from the next batch on. Lookups
    fall back to the values of ``fallback`` for missing keys.
    """

    def __init__(self, config_path: str, fallback: Optional[RecordingConfig] = None):
        self.config_path = Path(config_path)
        self.fallback = fallback or RecordingConfig()
        self._values: Dict[str, Any] = {}
        self._mtime: Optional[float] = None
        self._logger = get_logger('settings')

    def _reload(self) -> None:
        try:
            mtime = os.path.getmtime(self.config_path)
        except OSError:
            return

        if mtime == self._mtime:
            return

        try:
            data = _read_yaml(self.config_path)
            section = data.get('recording', {}) if isinstance(data, dict) else {}
            self._values = dict(section or {})
            self._mtime = mtime
            self._logger.debug(f"Settings reloaded from {self.config_path}")
        except (OSError, yaml.YAMLError) as e:
            self._logger.warning(f"Failed to reload settings, keeping previous values: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        self._reload()
        if key in self._values:
            return self._values[key]
        return getattr(self.fallback, key, default)


def create_example_config(path: str = "config.example.yaml") -> None:
    """Create an example configuration file."""
    example = """# Live Recorder Configuration

recording:
  output_dir: ./recordings
  batch_size: 20         # Segments per batch file
  live_threads: 1        # Parallel segment requests inside one batch
  thread_timeout: 30     # Seconds per segment request
  segment_retries: 3     # Attempts per segment before the batch is given up
  batch_timeout: 600     # Give up waiting on a batch after this many seconds
  poll_interval: 3       # Seconds between playlist checks
  codec: ts

http:
  request_timeout: 15

logging:
  level: INFO  # DEBUG, INFO, WARNING, ERROR
  file: ./logs/recorder.log
  max_size_mb: 10
  backup_count: 5
"""
    with open(path, 'w', encoding='utf-8') as f:
        f.write(example)


if __name__ == '__main__':
    # Create example config if run directly
    create_example_config()
    print("Created config.example.yaml")
