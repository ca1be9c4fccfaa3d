"""Unit tests for the generation mode switch document."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from tourvoice.generation.switch import (
    GenerationSwitch,
    load_generation_switch,
    parse_generation_switch,
)
from tourvoice.telemetry.logger import RunLogger


def test_default_switch_reuses_everything() -> None:
    """The default switch should force nothing and pin no replay audio."""

    switch = GenerationSwitch()

    assert switch.mode == "reuse_existing"
    assert switch.forces_script is False
    assert switch.forces_audio is False
    assert switch.replay_url("s1", "adult") is None


@pytest.mark.parametrize(
    ("mode", "script", "audio"),
    [
        ("force_regenerate_all", True, True),
        ("force_regenerate_script", True, False),
        ("force_regenerate_audio", False, True),
    ],
)
def test_force_modes_map_to_phase_flags(mode: str, script: bool, audio: bool) -> None:
    """Each force mode should enable exactly the phases it names."""

    switch = parse_generation_switch({"mode": mode})

    assert (switch.forces_script, switch.forces_audio) == (script, audio)


def test_parse_keeps_only_non_blank_replay_urls() -> None:
    """Blank replay entries should be dropped while real URLs are trimmed."""

    switch = parse_generation_switch(
        {
            "mode": "reuse_existing",
            "replay_audio": {
                "s1": {"adult": "  https://replay.test/a.mp3 ", "preteen": " "},
                "s2": {"adult": ""},
            },
        }
    )

    assert switch.replay_url("s1", "adult") == "https://replay.test/a.mp3"
    assert switch.replay_url("s1", "preteen") is None
    assert switch.replay_audio == {"s1": {"adult": "https://replay.test/a.mp3"}}


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"mode": "regenerate_everything"},
        {"replay_audio": ["s1"]},
        {"replay_audio": {"s1": "https://replay.test/a.mp3"}},
    ],
)
def test_parse_rejects_malformed_documents(payload: object) -> None:
    """Malformed switch documents should raise `ValueError`."""

    with pytest.raises(ValueError):
        parse_generation_switch(payload)


def test_load_missing_file_returns_default(tmp_path: Path) -> None:
    """An absent switch file should silently mean `reuse_existing`."""

    assert load_generation_switch(tmp_path / "missing.json") == GenerationSwitch()


def test_load_reads_valid_file(tmp_path: Path) -> None:
    """A valid file should be parsed into the matching switch."""

    path = tmp_path / "switch.json"
    path.write_text('{"mode": "force_regenerate_audio"}', encoding="utf-8")

    assert load_generation_switch(path).mode == "force_regenerate_audio"


@pytest.mark.parametrize("content", ["{not json", '{"mode": "nope"}'])
def test_load_malformed_file_falls_back_and_logs(tmp_path: Path, content: str) -> None:
    """Malformed files should fall back to defaults and emit a fallback event."""

    path = tmp_path / "switch.json"
    path.write_text(content, encoding="utf-8")
    sink = io.StringIO()

    switch = load_generation_switch(path, RunLogger(sink=sink))

    assert switch == GenerationSwitch()
    assert "stage=config event=switch_fallback" in sink.getvalue()
