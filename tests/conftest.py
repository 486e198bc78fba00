from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from mixreel.config import Settings
from mixreel.domain.errors import CompositionError
from mixreel.infrastructure.ffmpeg import MediaInfo, StreamInfo

VIDEO_SUFFIXES = {".mp4", ".webm", ".mov", ".mkv"}


class FakeRunner:
    """Stand-in for FFmpegRunner: records commands and writes the output file."""

    def __init__(
        self,
        audio_duration: float = 600.0,
        fail_labels: tuple[str, ...] = (),
        has_audio_stream: bool = True,
    ) -> None:
        self.audio_duration = audio_duration
        self.fail_labels = fail_labels
        self.has_audio_stream = has_audio_stream
        self.calls: list[dict] = []
        self.probed: list[str] = []
        self._durations: dict[str, float] = {}

    def run(
        self,
        args: list[str],
        timeout: Optional[float] = None,
        token=None,
        expected_duration: Optional[float] = None,
        on_progress=None,
        error_cls=CompositionError,
        label: str = "ffmpeg",
    ) -> None:
        self.calls.append({"args": list(args), "label": label, "expected_duration": expected_duration})
        output = Path(args[-1])
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(b"partial")
        if any(name in label for name in self.fail_labels):
            raise error_cls(f"{label} terminó con código 1", "simulated failure")
        if expected_duration is not None:
            self._durations[str(output)] = expected_duration

    def probe(self, path: str, timeout: Optional[float] = None) -> MediaInfo:
        self.probed.append(str(path))
        if Path(path).suffix.lower() in VIDEO_SUFFIXES:
            return MediaInfo(
                duration=self._durations.get(str(path), 30.0),
                bitrate=2_500_000,
                format_name="mov,mp4,m4a,3gp,3g2,mj2",
                size=Path(path).stat().st_size if Path(path).exists() else 0,
                audio=StreamInfo(codec="aac", sample_rate=44100, channels=2),
                video=StreamInfo(codec="h264", width=320, height=240, fps=5.0),
                tags={"artist": "from-container"},
            )
        return MediaInfo(
            duration=self.audio_duration,
            bitrate=320_000,
            format_name="mp3",
            size=1024,
            audio=StreamInfo(codec="mp3", sample_rate=44100, channels=2) if self.has_audio_stream else None,
        )

    def labels(self) -> list[str]:
        return [call["label"] for call in self.calls]


class FakePage:
    def __init__(self, fail_at_frame: Optional[int] = None) -> None:
        self.fail_at_frame = fail_at_frame
        self.content: Optional[str] = None
        self.applied: list[tuple[list, int]] = []
        self.screenshots: list[str] = []
        self.closed = False

    def set_content(self, html: str, wait_until: str = "load", timeout: Optional[int] = None) -> None:
        self.content = html

    def evaluate(self, expression: str, arg=None):
        if arg is not None:
            updates, frame = arg
            self.applied.append((updates, frame))
        return None

    def wait_for_function(self, expression: str, arg=None, timeout: Optional[int] = None) -> None:
        if self.fail_at_frame is not None and arg == self.fail_at_frame:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    def screenshot(self, path: str, type: str = "png", full_page: bool = False) -> bytes:
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)
        return b""

    def close(self) -> None:
        self.closed = True


class FakePool:
    def __init__(self, fail_at_frame: Optional[int] = None) -> None:
        self.fail_at_frame = fail_at_frame
        self.pages: list[FakePage] = []

    @contextmanager
    def page(self, width: int, height: int) -> Iterator[FakePage]:
        page = FakePage(self.fail_at_frame)
        self.pages.append(page)
        try:
            yield page
        finally:
            page.close()

    def release(self) -> None:
        pass

    @property
    def launched_count(self) -> int:
        return 1 if self.pages else 0


CATALOG = [
    {
        "artistName": "NEBULA DRIFT",
        "artistGenre": "trance",
        "mixes": [
            {
                "mixTitle": "Orbital Sessions",
                "mixArweaveURL": "https://arweave.net/orbital",
                "mixDuration": "72 Min",
                "mixDateYear": "2023",
            }
        ],
    },
    {
        "artistName": "Concrete Pulse",
        "artistGenre": "techno",
        "mixes": [
            {
                "mixTitle": "Warehouse",
                "mixArweaveURL": "https://arweave.net/warehouse",
                "mixDuration": "60:00",
                "mixDateYear": "2022",
            },
            {
                "mixTitle": "Broken link",
                "mixArweaveURL": "",
                "mixDuration": "10 Min",
            },
        ],
    },
]


@pytest.fixture
def catalog_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    path = tmp_path_factory.mktemp("catalog") / "artists.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, catalog_path: Path) -> Settings:
    return Settings(
        output_dir=tmp_path / "output",
        scratch_dir=tmp_path / "scratch",
        cache_dir=tmp_path / "cache",
        catalog_path=catalog_path,
        width=320,
        height=240,
        fps=5,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def pool() -> FakePool:
    return FakePool()
