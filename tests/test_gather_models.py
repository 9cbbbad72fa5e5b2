from __future__ import annotations

import math
from datetime import timedelta

import allure
import pytest

from scatter_gather.exceptions import EnvelopeEncodingError
from scatter_gather.gather.envelope import ArgumentEnvelope
from scatter_gather.gather.models import GatherConfig, GatherState

pytestmark = [
    allure.epic("Scatter Gather"),
    allure.feature("Gather State"),
]


def test_config_defaults() -> None:
    config = GatherConfig()

    assert config.max_attempts == 10
    assert config.poll_interval == timedelta(seconds=2)
    assert config.extras == {}


def test_merged_accepts_seconds_and_timedelta() -> None:
    base = GatherConfig()

    assert base.merged({"poll_interval": 0.2}).poll_interval == timedelta(seconds=0.2)
    assert base.merged({"poll_interval": timedelta(minutes=1)}).poll_interval == timedelta(
        minutes=1,
    )
    assert base.merged({"max_attempts": 3}).max_attempts == 3
    assert base.max_attempts == 10


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_attempts": 0},
        {"max_attempts": "3"},
        {"max_attempts": True},
        {"poll_interval": -1},
        {"poll_interval": "soon"},
    ],
)
def test_merged_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValueError):
        GatherConfig().merged(overrides)


def test_config_payload_keeps_unknown_keys() -> None:
    config = GatherConfig().merged({"max_attempts": 5, "poll_interval": 1.5, "tag": "nightly"})

    payload = config.to_payload()
    restored = GatherConfig.from_payload(payload)

    assert payload == {"max_attempts": 5, "poll_interval_seconds": 1.5, "tag": "nightly"}
    assert restored == config


def test_config_from_empty_payload_uses_defaults() -> None:
    assert GatherConfig.from_payload({}) == GatherConfig()


def test_state_payload_matches_perform_keywords() -> None:
    state = GatherState(
        wait_for_job_ids=("a", "b"),
        target_job=ArgumentEnvelope("CombiArgsJob", args=(1,), kwargs={"b": 2}),
        config=GatherConfig(max_attempts=3, poll_interval=timedelta(seconds=0.5)),
        remaining_attempts=2,
    )

    payload = state.to_payload()

    assert set(payload) == {
        "wait_for_job_ids",
        "target_job",
        "gather_config",
        "remaining_attempts",
    }
    assert GatherState.from_payload(**payload) == state


def test_next_attempt_never_goes_negative() -> None:
    state = GatherState(
        wait_for_job_ids=("a",),
        target_job=ArgumentEnvelope("NoArgsJob"),
        config=GatherConfig(),
        remaining_attempts=1,
    )

    assert state.next_attempt().remaining_attempts == 0
    assert state.next_attempt().next_attempt().remaining_attempts == 0
    assert state.remaining_attempts == 1


def test_state_with_unencodable_target_fails_to_serialize() -> None:
    state = GatherState(
        wait_for_job_ids=("a",),
        target_job=ArgumentEnvelope("PosargsJob", args=(object(), 2)),
        config=GatherConfig(),
        remaining_attempts=1,
    )

    with pytest.raises(EnvelopeEncodingError):
        state.to_payload()


@pytest.mark.parametrize("value", [object(), {1, 2}, math.inf])
def test_merged_rejects_unserializable_unknown_options(value: object) -> None:
    with pytest.raises(ValueError, match="JSON-serializable"):
        GatherConfig().merged({"tag": value})
