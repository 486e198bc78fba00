from __future__ import annotations

import argparse
import random

import httpx
import pytest

from conftest import FakePool, FakeRunner
from mixreel.audio.acquirer import AudioAcquirer
from mixreel.catalog import ArtistCatalog
from mixreel.config import Settings
from mixreel.domain.errors import ValidationError
from mixreel.domain.models import AudioSource, MediaRequest, RenderMode
from mixreel.pipeline import MixVideoPipeline, build_request, print_result
from mixreel.video.composer import VideoComposer
from mixreel.visuals.renderer import FrameRenderer
from mixreel.workflow.executor import WorkflowExecutor


@pytest.fixture
def pipeline(settings: Settings, monkeypatch) -> MixVideoPipeline:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    pipeline = MixVideoPipeline(settings)
    runner = FakeRunner()
    pool = FakePool()
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"ID3" * 100)))
    pipeline.browser_pool = pool
    pipeline.acquirer = AudioAcquirer(settings, runner=runner, client=client, rng=random.Random(0))
    pipeline.executor = WorkflowExecutor(
        settings,
        ArtistCatalog(settings.catalog_path, rng=random.Random(0)),
        pipeline.acquirer,
        FrameRenderer(settings, pool),
        VideoComposer(settings, runner),
    )
    yield pipeline
    pipeline.close()


def test_run_single_request(pipeline: MixVideoPipeline) -> None:
    result = pipeline.run(MediaRequest(target_duration_seconds=2))
    assert result.success
    print_result(result)


def test_run_batch_keeps_request_order(pipeline: MixVideoPipeline) -> None:
    requests = [
        MediaRequest(artist_selector="NEBULA DRIFT", target_duration_seconds=1, render_mode=RenderMode.STILL),
        MediaRequest(artist_selector="Concrete Pulse", target_duration_seconds=1, render_mode=RenderMode.STILL),
        MediaRequest(artist_selector="NEBULA DRIFT", target_duration_seconds=2, render_mode=RenderMode.STILL),
    ]

    results = pipeline.run_batch(requests, max_workers=2)

    assert [r.artifact.video.metadata_tags["artist"] for r in results] == [
        "NEBULA DRIFT", "Concrete Pulse", "NEBULA DRIFT"
    ]
    assert len({r.job_id for r in results}) == 3


def test_stats(pipeline: MixVideoPipeline) -> None:
    stats = pipeline.stats()
    assert stats["artists"] == 2
    assert "quality_tiers" in stats["audio"]


def _args(**overrides) -> argparse.Namespace:
    values = dict(
        request=None, artist="random", duration=30.0, style="classic", quality="high",
        fade_in=2.0, fade_out=2.0, urgency="medium", render_mode="frames",
        ai_background=False, audio=None, start=None,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def test_build_request_from_cli_flags() -> None:
    request = build_request(_args(audio="/tmp/set.wav", start=12.5, style="enhanced"))

    assert request.audio_source == AudioSource.UPLOADED
    assert request.uploaded_audio_path == "/tmp/set.wav"
    assert request.start_time_seconds == 12.5
    assert request.visual_style.value == "enhanced"


def test_build_request_rejects_bad_duration() -> None:
    with pytest.raises(ValidationError):
        build_request(_args(duration=0))
