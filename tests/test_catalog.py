from __future__ import annotations

import json
import random
from pathlib import Path

import pytest

from mixreel.catalog import ArtistCatalog, parse_duration_label
from mixreel.domain.errors import ValidationError


@pytest.mark.parametrize(
    "label,seconds",
    [
        ("72 Min", 4320.0),
        ("60:00", 3600.0),
        ("1:02:03", 3723.0),
        ("45", 2700.0),
        ("", 3600.0),
        (None, 3600.0),
        ("unknown", 3600.0),
    ],
)
def test_parse_duration_label(label, seconds: float) -> None:
    assert parse_duration_label(label) == seconds


def test_loads_artists_from_json(catalog_path: Path) -> None:
    catalog = ArtistCatalog(catalog_path)

    assert [a.name for a in catalog.artists] == ["NEBULA DRIFT", "Concrete Pulse"]
    nebula = catalog.artists[0]
    assert nebula.genre == "trance"
    assert nebula.mixes[0].source_url == "https://arweave.net/orbital"
    assert nebula.mixes[0].year == "2023"


def test_get_matches_case_insensitive_substring(catalog_path: Path) -> None:
    catalog = ArtistCatalog(catalog_path)

    assert catalog.get("nebula").name == "NEBULA DRIFT"
    assert catalog.get("Concrete Pulse live").name == "Concrete Pulse"


def test_get_unknown_name_falls_back_to_random(catalog_path: Path) -> None:
    catalog = ArtistCatalog(catalog_path, rng=random.Random(0))
    assert catalog.get("Nobody Known").name in {"NEBULA DRIFT", "Concrete Pulse"}


def test_pick_mix_ignores_invalid_urls(catalog_path: Path) -> None:
    catalog = ArtistCatalog(catalog_path, rng=random.Random(0))
    concrete = catalog.get("concrete")

    for _ in range(20):
        assert catalog.pick_mix(concrete).title == "Warehouse"


def test_select_random(catalog_path: Path) -> None:
    artist, mix = ArtistCatalog(catalog_path, rng=random.Random(1)).select("random")
    assert mix in artist.mixes
    assert mix.source_url.startswith("https://")


def test_missing_file_is_empty_catalog(tmp_path: Path) -> None:
    catalog = ArtistCatalog(tmp_path / "missing.json")

    assert catalog.artists == []
    with pytest.raises(ValidationError):
        catalog.select("random")


def test_artist_without_valid_mix(tmp_path: Path) -> None:
    path = tmp_path / "artists.json"
    path.write_text(json.dumps([{"artistName": "Ghost", "mixes": [{"mixArweaveURL": "ftp://x"}]}]))

    with pytest.raises(ValidationError, match="URL"):
        ArtistCatalog(path).select("Ghost")


@pytest.mark.parametrize("content", ["{not json", '{"artistName": "x"}'])
def test_malformed_catalog(tmp_path: Path, content: str) -> None:
    path = tmp_path / "artists.json"
    path.write_text(content)

    with pytest.raises(ValidationError):
        ArtistCatalog(path).artists


def _two_mix_catalog(tmp_path: Path) -> Path:
    path = tmp_path / "artists.json"
    path.write_text(json.dumps([{
        "artistName": "Tidal Room",
        "mixes": [
            {"mixTitle": "Teaser", "mixArweaveURL": "https://arweave.net/teaser", "mixDuration": "10 Min"},
            {"mixTitle": "Full Set", "mixArweaveURL": "https://arweave.net/full", "mixDuration": "72 Min"},
        ],
    }]))
    return path


def test_select_prefers_mix_covering_requested_duration(tmp_path: Path) -> None:
    catalog = ArtistCatalog(_two_mix_catalog(tmp_path), rng=random.Random(0))

    for _ in range(20):
        _, mix = catalog.select("Tidal Room", min_duration_seconds=1800)
        assert mix.title == "Full Set"


def test_select_falls_back_to_shorter_mix(tmp_path: Path) -> None:
    catalog = ArtistCatalog(_two_mix_catalog(tmp_path), rng=random.Random(0))

    titles = {catalog.select("Tidal Room", min_duration_seconds=3 * 3600)[1].title for _ in range(30)}

    assert titles <= {"Teaser", "Full Set"}
    assert titles
