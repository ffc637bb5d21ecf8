from __future__ import annotations

import pytest
from pydantic import ValidationError

from pauseshop.config import DetectorConfig
from pauseshop.detector import load_steps, run_replay


def test_load_steps_accepts_bare_list() -> None:
    steps, host = load_steps([{"at": 1, "event": "pause", "paused": True}])
    assert host is None
    assert steps[0].event == "pause"
    assert steps[0].paused is True
    assert steps[0].current_time is None


def test_load_steps_accepts_host_envelope() -> None:
    steps, host = load_steps({"host": "www.youtube.com", "events": [{"event": "play"}]})
    assert host == "www.youtube.com"
    assert [step.event for step in steps] == ["play"]


def test_load_steps_rejects_bad_payloads() -> None:
    with pytest.raises(ValueError, match="list of events"):
        load_steps("pause")
    with pytest.raises(ValidationError):
        load_steps([{"at": -1, "event": "pause"}])


def test_replay_genuine_pause() -> None:
    steps, _ = load_steps(
        [
            {"at": 0, "event": "play", "current_time": 10, "duration": 600, "paused": False},
            {"at": 4, "event": "timeupdate", "current_time": 14},
            {"at": 5, "event": "pause", "current_time": 15, "paused": True},
        ]
    )
    layer = run_replay(steps)
    assert layer.by_action("minted") == ["pause-1"]
    assert layer.by_action("confirmed") == ["pause-1"]
    confirmed = [record for record in layer.records if record.action == "confirmed"][0]
    assert confirmed.at == pytest.approx(5.3)


def test_replay_sorts_steps_by_time() -> None:
    steps, _ = load_steps(
        [
            {"at": 2, "event": "play", "paused": False},
            {"at": 1, "event": "pause", "current_time": 30, "paused": True},
        ]
    )
    layer = run_replay(steps)
    assert layer.by_action("minted") == ["pause-1"]
    assert layer.by_action("cancelled") == ["pause-1"]
    assert layer.by_action("confirmed") == ["pause-1"]


def test_replay_youtube_scrub_is_vetoed() -> None:
    steps, host = load_steps(
        {
            "host": "www.youtube.com",
            "events": [
                {"at": 0, "event": "play", "current_time": 50, "duration": 900, "paused": False},
                {"at": 1.0, "event": "mousedown", "target_classes": ["ytp-progress-bar"]},
                {"at": 1.1, "event": "pause", "paused": True},
                {"at": 1.4, "event": "play", "current_time": 300, "paused": False},
            ],
        }
    )
    layer = run_replay(steps, hostname=host)
    assert layer.records == []


def test_replay_respects_config() -> None:
    steps, _ = load_steps(
        [
            {"at": 0, "event": "play", "current_time": 10, "duration": 600, "paused": False},
            {"at": 1, "event": "seeking", "paused": True},
            {"at": 1.2, "event": "seeked", "current_time": 200},
        ]
    )
    layer = run_replay(steps, config=DetectorConfig(seeking_debounce=0.1, reconfirm_delay=0.2))
    records = layer.records
    assert [record.action for record in records] == ["minted", "confirmed"]
    assert records[0].at == pytest.approx(1.5)
