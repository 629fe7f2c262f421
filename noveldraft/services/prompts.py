"""Prompt text for every generation stage.

Each entry in :data:`PROMPT_TEMPLATES` pairs a ``base`` role description with
stage ``instructions``; the builder functions below fill in the novel
parameters and the material being revised.
"""

from __future__ import annotations

from typing import List, Sequence

from .content_validation import CHAPTER_MAX_LENGTH, CHAPTER_MIN_LENGTH
from .parameters import NovelParameters

MAX_PROMPT_CHARS = 20000

# Mirrors the chapter acceptance window.
CHAPTER_LENGTH_RULE = (
    f"Keep the chapter between {CHAPTER_MIN_LENGTH} and {CHAPTER_MAX_LENGTH} characters "
    f"(roughly {CHAPTER_MIN_LENGTH // 5} to {CHAPTER_MAX_LENGTH // 7} words)."
)

PROMPT_TEMPLATES = {
    "outline": {
        "base": (
            "You are a world-class author creating a detailed novel outline based on the "
            "following parameters."
        ),
        "instructions": (
            "Your task:\n"
            "- Produce a very detailed outline covering the entire novel, from start to end.\n"
            "- Label every chapter on its own line as 'Chapter <number>: <title>'.\n"
            "- Plan between 10 and 150 chapters and state how many there will be.\n"
            "- Describe each chapter's key events, character developments, conflicts and "
            "thematic progression.\n"
            "- Set the stage for a narrative rich in emotional depth and thematic resonance."
        ),
    },
    "outline_revision": {
        "base": "You are a senior developmental editor revising a novel outline.",
        "instructions": (
            "Revise and improve the outline so it follows the parameters more closely. "
            "Keep the 'Chapter <number>:' labels, tighten causality between chapters and "
            "deepen character arcs. Output only the revised outline."
        ),
        "focus": {
            1: "Focus on structure: pacing across acts, escalation and the placement of turning points.",
            2: "Focus on polish: character consistency, thematic threads and foreshadowing payoffs.",
        },
    },
    "chapter_draft": {
        "base": (
            "You are continuing to write a top-tier novel following the given outline and "
            "parameters. Output only the chapter text."
        ),
        "instructions": (
            "INSTRUCTIONS:\n"
            "1. Think through the plot details internally.\n"
            "2. Produce a single, coherent chapter that matches the style and themes.\n"
            "3. {length_rule}\n"
            "4. No explanations in the final output. Just the polished chapter text."
        ),
    },
    "chapter_revision": {
        "base": "You must now produce a refined version of the chapter below.",
        "instructions": (
            "Rewrite the chapter, incorporating improvements. Adjust language complexity to "
            "{language_complexity}/5 and respect the content controls (violence "
            "{violence_level}/5, adult content {adult_content_level}/5, profanity "
            "{profanity_level}/5, controversial topics: {controversial_handling}). "
            "{length_rule} Output only the improved chapter text."
        ),
        "focus": {
            1: "Strengthen scene structure, continuity with earlier chapters and dialogue.",
            2: "Polish prose rhythm, imagery and word choice without changing events.",
        },
    },
    "comparison": {
        "base": (
            "You have two chapter drafts (Draft A and Draft B) for the same chapter. Compare "
            "both for narrative coherence, thematic depth, character consistency and "
            "alignment with the instructions."
        ),
        "instructions": 'End your answer with exactly "CHOSEN: Draft A" or "CHOSEN: Draft B".',
    },
}


def _truncate(prompt: str) -> str:
    if len(prompt) <= MAX_PROMPT_CHARS:
        return prompt
    return prompt[:MAX_PROMPT_CHARS]


def _assemble(sections: Sequence[str]) -> str:
    return "\n\n".join(section.strip() for section in sections if section and section.strip())


def _join(sections: Sequence[str]) -> str:
    return _truncate(_assemble(sections))


def parameters_as_text(params: NovelParameters) -> str:
    """Render the parameters as the labelled block shared by all prompts."""

    characters: List[str] = []
    for position, character in enumerate(params.characters, start=1):
        relationships = ", ".join(character.relationships) or "none"
        characters.append(
            f"Character {position}: {character.name} ({character.role}), {character.archetype}, "
            f"{character.age_range}, Arc: {character.arc_type}, Relationships: {relationships}"
        )

    return "\n".join(
        [
            "**Core**",
            f"- Title: {params.title}",
            f"- Length: {params.novel_length}",
            f"- Chapter Structure: {params.chapter_structure}",
            f"- Avg Chapter Length: {params.average_chapter_length}",
            f"- Chapter Naming: {params.chapter_naming_style}",
            "",
            "**Genre & Themes**",
            f"- Primary Genre: {params.primary_genre}",
            f"- Secondary Genre: {params.secondary_genre or 'None'}",
            f"- Primary Theme: {params.primary_theme}",
            f"- Secondary Theme: {params.secondary_theme or 'None'}",
            "",
            "**Characters**",
            *characters,
            "",
            "**Setting**",
            f"- Type: {params.setting_type}",
            f"- World Complexity: {params.world_complexity}/5",
            f"- Cultural Depth: {params.cultural_depth}/5",
            f"- Cultural Framework: {params.cultural_framework}",
            "",
            "**Narrative Foundation**",
            f"- POV: {params.pov}",
            f"- Tone Formality: {params.tone_formality}/5",
            f"- Tone Descriptive: {params.tone_descriptive}/5",
            f"- Dialogue Balance: {params.dialogue_balance}/5",
            "",
            "**Plot**",
            f"- Structure: {params.story_structure}",
            f"- Conflicts: {', '.join(params.conflict_types)}",
            f"- Resolution: {params.resolution_style}",
            "",
            "**Style Controls**",
            f"- Description Density: {params.description_density}/5",
            f"- Pacing Overall: {params.pacing_overall}/5",
            f"- Pacing Variance: {params.pacing_variance}/5",
            f"- Emotional Intensity: {params.emotional_intensity}/5",
            f"- Metaphor Frequency: {params.metaphor_frequency}/5",
            f"- Flashbacks: {params.flashback_usage}/5",
            f"- Foreshadowing: {params.foreshadowing_intensity}/5",
            "",
            "**Technical**",
            f"- Language Complexity: {params.language_complexity}/5",
            f"- Sentence Structure: {params.sentence_structure}",
            f"- Paragraph Length: {params.paragraph_length}",
            "",
            "**Content**",
            f"- Violence: {params.violence_level}/5",
            f"- Adult Content: {params.adult_content_level}/5",
            f"- Profanity: {params.profanity_level}/5",
            f"- Controversial: {params.controversial_handling}",
            "",
            "**Description**",
            params.story_description or "No additional description.",
        ]
    )


def _outline_notes(params: NovelParameters) -> str:
    genre = params.primary_genre + (f" + {params.secondary_genre}" if params.secondary_genre else "")
    theme = params.primary_theme + (f" + {params.secondary_theme}" if params.secondary_theme else "")
    return (
        "[INTEGRATION NOTES - OUTLINE]\n"
        f"- Novel Length: {params.novel_length}\n"
        f"- Genre: {genre}, Themes: {theme}.\n"
        f"- Story Structure: {params.story_structure}\n"
        f"- Setting: {params.setting_type}, Framework: {params.cultural_framework}.\n"
        "- Characters: reflect archetypes and arcs in the outline."
    )


def _chapter_notes(params: NovelParameters, chapter_number: int) -> str:
    return (
        f"[INTEGRATION NOTES - CHAPTER {chapter_number}]\n"
        f"- Genre/Themes: {params.primary_genre}, {params.primary_theme}.\n"
        f"- Pacing: overall {params.pacing_overall}, variance {params.pacing_variance}.\n"
        f"- Emotional Intensity: {params.emotional_intensity}, Foreshadowing: "
        f"{params.foreshadowing_intensity}.\n"
        f"- POV: {params.pov}, Dialogue Balance: {params.dialogue_balance}."
    )


def outline_prompt(params: NovelParameters) -> str:
    entry = PROMPT_TEMPLATES["outline"]
    return _join([_outline_notes(params), entry["base"], parameters_as_text(params), entry["instructions"]])


def outline_revision_prompt(params: NovelParameters, pass_number: int, outline: str) -> str:
    entry = PROMPT_TEMPLATES["outline_revision"]
    focus = entry["focus"].get(pass_number, "")
    return _join(
        [
            entry["base"],
            f"Revision pass {pass_number}. {focus}",
            f"Current outline:\n{outline}",
            f"Parameters:\n{parameters_as_text(params)}",
            entry["instructions"],
        ]
    )


def chapter_draft_prompt(
    params: NovelParameters,
    outline_segment: str,
    previous_chapters: Sequence[str],
    chapter_number: int,
) -> str:
    entry = PROMPT_TEMPLATES["chapter_draft"]
    head = _assemble(
        [
            _chapter_notes(params, chapter_number),
            entry["base"],
            f"Context:\n- This is Chapter {chapter_number}.\n- Outline snippet for this chapter:\n{outline_segment}",
            f"Parameters (reiterated for clarity):\n{parameters_as_text(params)}",
            entry["instructions"].format(length_rule=CHAPTER_LENGTH_RULE),
            "Previously written chapters (for continuity):",
        ]
    )
    continuity = "\n".join(
        f"CHAPTER {position}:\n{text.strip()}"
        for position, text in enumerate(previous_chapters, start=1)
    ) or "None so far"

    # Over budget, the oldest chapters are cut from the front so the latest one survives.
    budget = max(MAX_PROMPT_CHARS - len(head) - 1, 0)
    if len(continuity) > budget:
        continuity = continuity[len(continuity) - budget:]
    return _truncate(f"{head}\n{continuity}")


def chapter_revision_prompt(params: NovelParameters, revision_number: int, chapter: str) -> str:
    entry = PROMPT_TEMPLATES["chapter_revision"]
    focus = entry["focus"].get(revision_number, "")
    return _join(
        [
            entry["base"],
            f"Revision {revision_number}. {focus}",
            f"Current chapter:\n{chapter}",
            entry["instructions"].format(
                language_complexity=params.language_complexity,
                violence_level=params.violence_level,
                adult_content_level=params.adult_content_level,
                profanity_level=params.profanity_level,
                controversial_handling=params.controversial_handling,
                length_rule=CHAPTER_LENGTH_RULE,
            ),
        ]
    )


def comparison_prompt(draft_a: str, draft_b: str) -> str:
    entry = PROMPT_TEMPLATES["comparison"]
    return _join([entry["base"], entry["instructions"], f"Draft A:\n{draft_a}", f"Draft B:\n{draft_b}"])


__all__ = [
    "CHAPTER_LENGTH_RULE",
    "MAX_PROMPT_CHARS",
    "PROMPT_TEMPLATES",
    "chapter_draft_prompt",
    "chapter_revision_prompt",
    "comparison_prompt",
    "outline_prompt",
    "outline_revision_prompt",
    "parameters_as_text",
]
