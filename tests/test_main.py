"""Tests for command line helpers."""
from liverecorder.config import Config, FileSettingsProvider, LoggingConfig, RecordingConfig, StaticSettings
from liverecorder.main import build_settings, parse_args


def make_config(tmp_path):
    return Config(
        recording=RecordingConfig(output_dir=str(tmp_path / "out"), batch_size=8),
        logging=LoggingConfig(file=str(tmp_path / "logs" / "recorder.log")),
    )


def test_parse_args():
    args = parse_args(["https://cdn.example.com/live.m3u8", "-o", "rec", "--batch-size", "5"])

    assert args.url == "https://cdn.example.com/live.m3u8"
    assert args.output_dir == "rec"
    assert args.batch_size == 5
    assert args.threads is None
    assert args.config == "config.yaml"


def test_config_file_gives_live_settings(tmp_path):
    args = parse_args(["u", "-c", str(tmp_path / "config.yaml")])

    settings = build_settings(args, make_config(tmp_path), config_found=True)

    assert isinstance(settings, FileSettingsProvider)
    assert settings.get('batch_size') == 8


def test_command_line_overrides_are_fixed(tmp_path):
    args = parse_args(["u", "--batch-size", "0", "--threads", "3"])

    settings = build_settings(args, make_config(tmp_path), config_found=True)

    assert isinstance(settings, StaticSettings)
    assert settings.get('batch_size') == 1
    assert settings.get('live_threads') == 3
