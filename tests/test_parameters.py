import logging

import pytest

from noveldraft.services.errors import ParameterValidationError
from noveldraft.services.parameters import NovelParameters

from conftest import sample_payload


def test_defaults_fill_optional_fields():
    params = NovelParameters.from_payload(sample_payload())

    assert params.title == "The Salt Archive"
    assert params.novel_length == "50k-100k"
    assert params.pov == "third_limited"
    assert params.average_chapter_length == 2500
    assert params.conflict_types == ("person_vs_self",)
    assert params.flashback_usage == 2
    assert params.characters[0].relationships == ("Tomas",)


def test_missing_required_fields_are_all_reported():
    with pytest.raises(ParameterValidationError) as excinfo:
        NovelParameters.from_payload({"title": "  ", "characters": []})

    problems = excinfo.value.problems
    assert "Title is required." in problems
    assert "Primary genre is required." in problems
    assert "Primary theme is required." in problems
    assert "At least one character is required." in problems


def test_non_mapping_payload_is_rejected():
    with pytest.raises(ParameterValidationError):
        NovelParameters.from_payload(None)


def test_invalid_enumerations_are_rejected():
    payload = sample_payload(pov="second", paragraph_length="huge")
    payload["characters"][0]["role"] = "narrator"

    with pytest.raises(ParameterValidationError) as excinfo:
        NovelParameters.from_payload(payload)

    message = str(excinfo.value)
    assert "pov" in message
    assert "paragraph length" in message
    assert "invalid role" in message


def test_out_of_range_sliders_are_clamped_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="noveldraft.services.parameters"):
        params = NovelParameters.from_payload(sample_payload(violence_level=9, pacing_overall="0"))

    assert params.violence_level == 3
    assert params.pacing_overall == 3
    assert "Invalid violence_level value: 9" in caplog.text


def test_non_numeric_slider_is_an_error():
    with pytest.raises(ParameterValidationError, match="Tone formality must be a whole number"):
        NovelParameters.from_payload(sample_payload(tone_formality="loud"))


def test_stored_parameters_rebuild_unchanged():
    params = NovelParameters.from_payload(
        sample_payload(secondary_genre="Noir", conflict_types=["person_vs_society"])
    )

    assert NovelParameters.from_dict(params.to_dict()) == params
