from noveldraft.services.parameters import NovelParameters
from noveldraft.services.prompts import (
    CHAPTER_LENGTH_RULE,
    MAX_PROMPT_CHARS,
    chapter_draft_prompt,
    chapter_revision_prompt,
)

from conftest import sample_payload


def _long_chapter(index: int) -> str:
    body = (f"Chapter {index} keeps moving. " * 200)[:3790]
    return f"{body} END-{index}"


def test_long_continuity_keeps_the_most_recent_chapter():
    params = NovelParameters.from_payload(sample_payload())
    previous = [_long_chapter(index) for index in range(1, 6)]

    prompt = chapter_draft_prompt(params, "Chapter 6: The reckoning", previous, 6)

    assert len(prompt) <= MAX_PROMPT_CHARS
    assert prompt.endswith("END-5")
    assert "END-4" in prompt
    # The oldest material is what gets cut.
    assert "CHAPTER 1:\n" not in prompt
    assert "This is Chapter 6." in prompt
    assert CHAPTER_LENGTH_RULE in prompt


def test_short_continuity_is_kept_whole():
    params = NovelParameters.from_payload(sample_payload())

    prompt = chapter_draft_prompt(params, "Chapter 2: Fog", ["First chapter text."], 2)

    assert prompt.endswith("CHAPTER 1:\nFirst chapter text.")


def test_first_chapter_has_no_continuity():
    params = NovelParameters.from_payload(sample_payload())

    prompt = chapter_draft_prompt(params, "Chapter 1: Arrival", [], 1)

    assert prompt.endswith("None so far")


def test_chapter_prompts_ask_for_the_accepted_length():
    params = NovelParameters.from_payload(sample_payload())
    assert params.average_chapter_length == 2500

    draft = chapter_draft_prompt(params, "Chapter 1: Arrival", [], 1)
    revision = chapter_revision_prompt(params, 1, "Some chapter text.")

    for prompt in (draft, revision):
        assert "between 1000 and 4000 characters" in prompt
        assert "2500 words" not in prompt
