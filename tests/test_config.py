from __future__ import annotations

from pathlib import Path

import pytest

from mixreel.config import Settings, bitrate_to_int
from mixreel.domain.models import QualityTier


def test_defaults_have_monotonic_quality_tiers() -> None:
    settings = Settings()
    order = [QualityTier.LOW, QualityTier.MEDIUM, QualityTier.HIGH, QualityTier.ULTRA]

    video = [bitrate_to_int(settings.video_quality[t].video_bitrate) for t in order]
    audio = [bitrate_to_int(settings.audio_quality[t].bitrate) for t in order]

    assert video == sorted(video)
    assert audio == sorted(audio)


@pytest.mark.parametrize("raw,value", [("2500k", 2_500_000), ("1.5M", 1_500_000), ("96000", 96_000)])
def test_bitrate_to_int(raw: str, value: int) -> None:
    assert bitrate_to_int(raw) == value


def test_load_merges_yaml_and_environment(tmp_path: Path, monkeypatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "fps: 24\n"
        "stage_retries: 1\n"
        "video_quality:\n"
        "  low:\n"
        "    video_bitrate: 800k\n"
        "    audio_bitrate: 96k\n"
        "    preset: veryfast\n"
        "    crf: 30\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("STAGE_RETRIES", "3")
    monkeypatch.setenv("FALLBACK_ENABLED", "false")

    settings = Settings.load(str(config))

    assert settings.fps == 24
    assert settings.stage_retries == 3
    assert settings.fallback_enabled is False
    assert settings.video_quality[QualityTier.LOW].video_bitrate == "800k"
    assert settings.video_quality[QualityTier.ULTRA].video_bitrate == "4000k"


def test_load_without_file_uses_defaults(tmp_path: Path, monkeypatch) -> None:
    for name in ("STAGE_RETRIES", "FALLBACK_ENABLED", "MIXREEL_OUTPUT_DIR"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.load(str(tmp_path / "nope.yaml"))

    assert settings.fps == 30
    assert settings.fallback_enabled is True


def test_ensure_dirs(tmp_path: Path) -> None:
    settings = Settings(output_dir=tmp_path / "o", scratch_dir=tmp_path / "s", cache_dir=tmp_path / "c")
    settings.ensure_dirs()
    settings.ensure_dirs()
    assert all((tmp_path / name).is_dir() for name in "osc")
