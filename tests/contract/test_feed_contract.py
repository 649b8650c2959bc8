"""
Contract tests for the upstream ATC24 feed.

Validates that feed frames decode into the documented payload models.
These tests run independently (no network required).
"""

import json
from pathlib import Path

from contracts import constants
from contracts.validation import (
    validate_aircraft_snapshot,
    validate_atis,
    validate_controllers,
    validate_feed_envelope,
    validate_flight_plan,
)


def load_example(filename: str) -> dict:
    """Load example JSON file."""
    example_path = Path(__file__).parent.parent.parent / "contracts" / "examples" / filename
    with open(example_path) as f:
        return json.load(f)


class TestFeedEnvelope:
    """Every upstream frame is {t, d}."""

    def test_examples_have_known_types(self):
        for filename in ("acft_data.json", "flight_plan.json", "controllers.json", "atis.json"):
            is_valid, envelope, error = validate_feed_envelope(load_example(filename))
            assert is_valid, f"{filename} should validate: {error}"
            assert envelope.t in constants.FEED_TYPES

    def test_envelope_without_type_fails(self):
        is_valid, _, _ = validate_feed_envelope({"d": {}})
        assert not is_valid

    def test_envelope_must_be_object(self):
        is_valid, _, _ = validate_feed_envelope(["ACFT_DATA", {}])
        assert not is_valid

    def test_unknown_type_still_parses_as_envelope(self):
        is_valid, envelope, _ = validate_feed_envelope({"t": "BOGUS", "d": None})
        assert is_valid
        assert envelope.t not in constants.FEED_TYPES


class TestAircraftSnapshot:

    def test_example_validates(self):
        example = load_example("acft_data.json")
        is_valid, snapshot, error = validate_aircraft_snapshot(example["d"])

        assert is_valid, f"Example should validate: {error}"
        aircraft = snapshot.root["Delta-1234"]
        assert aircraft.player_name == "captain_ptfs"
        assert aircraft.aircraft_type == "Boeing 737-800"
        assert aircraft.position.x == -12345.5
        assert aircraft.is_on_ground is None
        assert snapshot.root["Speedbird-42"].is_on_ground is True

    def test_empty_snapshot_is_valid(self):
        is_valid, snapshot, _ = validate_aircraft_snapshot({})
        assert is_valid
        assert snapshot.root == {}

    def test_missing_position_fails(self):
        example = load_example("acft_data.json")
        del example["d"]["Delta-1234"]["position"]

        is_valid, _, error = validate_aircraft_snapshot(example["d"])
        assert not is_valid, "Should fail without position"

    def test_dump_round_trips_wire_keys(self):
        example = load_example("acft_data.json")
        _, snapshot, _ = validate_aircraft_snapshot(example["d"])

        dumped = snapshot.root["Delta-1234"].model_dump(by_alias=True, exclude_unset=True)
        assert dumped == example["d"]["Delta-1234"]


class TestFlightPlan:

    def test_example_validates(self):
        example = load_example("flight_plan.json")
        is_valid, plan, error = validate_flight_plan(example["d"])

        assert is_valid, f"Example should validate: {error}"
        assert plan.callsign == "Delta-1234"
        assert plan.real_callsign == "DAL1234"
        assert plan.flight_rules == "IFR"
        assert plan.flight_level == "100"

    def test_missing_arrival_fails(self):
        example = load_example("flight_plan.json")
        del example["d"]["arriving"]

        is_valid, _, _ = validate_flight_plan(example["d"])
        assert not is_valid

    def test_empty_callsign_fails(self):
        example = load_example("flight_plan.json")
        example["d"]["callsign"] = ""

        is_valid, _, _ = validate_flight_plan(example["d"])
        assert not is_valid


class TestControllers:

    def test_example_validates(self):
        example = load_example("controllers.json")
        is_valid, controllers, error = validate_controllers(example["d"])

        assert is_valid, f"Example should validate: {error}"
        assert len(controllers.root) == 2
        assert controllers.root[0].holder == "tower_guy"
        assert controllers.root[1].holder is None
        assert controllers.root[1].queue == ["pilot_a"]

    def test_object_instead_of_list_fails(self):
        is_valid, _, _ = validate_controllers({"airport": "IRFD"})
        assert not is_valid


class TestAtis:

    def test_example_validates(self):
        example = load_example("atis.json")
        is_valid, atis, error = validate_atis(example["d"])

        assert is_valid, f"Example should validate: {error}"
        assert atis.airport == "IRFD"
        assert atis.letter == "A"
        assert len(atis.lines) == 2

    def test_missing_lines_fails(self):
        example = load_example("atis.json")
        del example["d"]["lines"]

        is_valid, _, _ = validate_atis(example["d"])
        assert not is_valid
