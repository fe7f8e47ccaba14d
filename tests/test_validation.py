"""Tests for status payload validation and control label normalisation."""

import pytest

from mutedeck2mqtt.errors import MissingField
from mutedeck2mqtt.validation import (
    REQUIRED_KEYS,
    platform_name,
    to_title_case,
    validate_status_record,
)


def _record(**overrides):
    record = {
        "call": "active",
        "control": "zoom-meeting",
        "mute": "inactive",
        "record": "disabled",
        "share": "disabled",
        "video": "active",
    }
    record.update(overrides)
    return record


class TestPlatformName:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("zoom", "Zoom"),
            ("zoom-abc", "Zoom"),
            ("teams", "Teams"),
            ("teams-classic", "Teams"),
            ("webex", "Webex"),
            ("streamyard", "StreamYard"),
            ("google-meet", "Google Meet"),
            ("system", "System"),
            ("some_other_app", "Some Other App"),
        ],
    )
    def test_labels(self, value, expected):
        assert platform_name(value) == expected

    def test_exact_matches_are_not_prefix_matches(self):
        # webex/streamyard/google-meet match exactly, not by prefix
        assert platform_name("webex_beta") == "Webex Beta"
        assert platform_name("google-meet-x") == "Google-Meet-X"

    def test_title_case_replaces_underscores(self):
        assert to_title_case("my_room") == "My Room"
        assert to_title_case("MyRoom") == "Myroom"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("room2b", "Room2b"),
            ("it's_app", "It's App"),
            ("2nd_floor", "2nd Floor"),
            ("google-meet-x", "Google-Meet-X"),
        ],
    )
    def test_digits_and_apostrophes_stay_inside_words(self, value, expected):
        assert to_title_case(value) == expected

    def test_control_label_keeps_apostrophe_word(self):
        assert platform_name("it's_app") == "It's App"


class TestValidateStatusRecord:
    def test_normalises_control_in_place(self):
        record = _record()
        result = validate_status_record(record)
        assert result is record
        assert record["control"] == "Zoom"

    def test_extra_keys_pass_through(self):
        record = _record(extra=1)
        validate_status_record(record)
        assert record["extra"] == 1
        assert set(record) == set(REQUIRED_KEYS) | {"extra"}

    def test_non_string_control_left_untouched(self):
        record = _record(control=None)
        validate_status_record(record)
        assert record["control"] is None

    @pytest.mark.parametrize("missing", REQUIRED_KEYS)
    def test_missing_key_raises(self, missing):
        record = _record()
        del record[missing]
        with pytest.raises(MissingField) as exc:
            validate_status_record(record)
        assert exc.value.key == missing
        assert str(exc.value) == f"Missing required key: {missing}"

    def test_first_missing_key_in_fixed_order(self):
        with pytest.raises(MissingField) as exc:
            validate_status_record({"call": "active", "video": "active"})
        assert exc.value.key == "control"

    def test_missing_key_does_not_normalise(self):
        record = {"control": "zoom"}
        with pytest.raises(MissingField):
            validate_status_record(record)
        assert record["control"] == "zoom"
