from __future__ import annotations

import pytest

from mixreel.director.parser import RequestParser, extract_artist, extract_duration, strip_fences
from mixreel.domain.errors import CompletionError, ValidationError
from mixreel.domain.models import AudioSource, QualityTier, VisualStyle


def test_parse_fenced_json() -> None:
    raw = """```json
    {"artist_selector": "NEBULA DRIFT", "target_duration_seconds": 45, "visual_style": "modern",
     "quality_tier": "ultra"}
    ```"""

    request = RequestParser().parse(raw)

    assert request.artist_selector == "NEBULA DRIFT"
    assert request.target_duration_seconds == 45
    assert request.visual_style == VisualStyle.MODERN
    assert request.quality_tier == QualityTier.ULTRA
    assert request.fade_in_seconds == 2.0


def test_parse_dict_defaults() -> None:
    request = RequestParser().parse({})
    assert request.artist_selector == "random"
    assert request.audio_source == AudioSource.REMOTE


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        {"target_duration_seconds": -5},
        {"fade_in_seconds": -1},
        {"visual_style": "psychedelic"},
        {"audio_source": "uploaded"},
    ],
)
def test_invalid_requests(raw) -> None:
    with pytest.raises(ValidationError):
        RequestParser().parse(raw)


def test_request_is_immutable() -> None:
    request = RequestParser().parse({"artist_selector": "x"})
    with pytest.raises(Exception):
        request.artist_selector = "y"


def test_strip_fences_keeps_plain_text() -> None:
    assert strip_fences('  {"a": 1} ') == '{"a": 1}'


def test_heuristics() -> None:
    assert extract_duration("make a 2 minute clip") == 120
    assert extract_duration("45 seconds please") == 45
    assert extract_duration("no duration here") == 30
    assert extract_artist("Create a video for NEBULA DRIFT, please") == "NEBULA DRIFT"
    assert extract_artist("something for 30 seconds") is None


class StubCompletion:
    def __init__(self, reply=None, error=False):
        self.reply = reply
        self.error = error

    def complete(self, prompt: str, **options) -> str:
        if self.error:
            raise CompletionError("sin clave")
        return self.reply


def test_from_prompt_uses_completion_reply() -> None:
    reply = '```json\n{"artist_selector": "Concrete Pulse", "target_duration_seconds": 20}\n```'
    request = RequestParser().from_prompt("anything", StubCompletion(reply))
    assert request.artist_selector == "Concrete Pulse"
    assert request.target_duration_seconds == 20


@pytest.mark.parametrize("completion", [None, StubCompletion(error=True), StubCompletion("sorry, no")])
def test_from_prompt_falls_back_to_heuristics(completion) -> None:
    request = RequestParser().from_prompt("A 45 second enhanced video for NEBULA DRIFT", completion)

    assert request.artist_selector == "NEBULA DRIFT"
    assert request.target_duration_seconds == 45
    assert request.visual_style == VisualStyle.ENHANCED


def test_from_prompt_heuristic_out_of_range_raises_typed_error() -> None:
    with pytest.raises(ValidationError, match="Pedido inválido"):
        RequestParser().from_prompt("a 0 seconds video")
