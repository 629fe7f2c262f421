"""Validated novel configuration captured when a job is created."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ParameterValidationError

LOGGER = logging.getLogger(__name__)

NOVEL_LENGTHS = ("50k-100k", "100k-150k", "150k+")
POV_TYPES = ("first", "third_limited", "third_omniscient", "multiple")
SENTENCE_STRUCTURES = ("varied", "consistent", "simple", "complex")
PARAGRAPH_LENGTHS = ("short", "medium", "long")
CONTROVERSIAL_HANDLING = ("avoid", "careful", "direct")
CHAPTER_STRUCTURES = ("variable", "consistent")
CHAPTER_NAMING_STYLES = ("numbered", "titled", "both")
CHARACTER_ROLES = ("protagonist", "antagonist", "supporting")
ARC_TYPES = ("redemption", "fall", "coming_of_age", "internal_discovery", "static")
CONFLICT_TYPES = (
    "person_vs_person",
    "person_vs_nature",
    "person_vs_society",
    "person_vs_self",
    "person_vs_technology",
    "person_vs_fate",
)

GENRE_OPTIONS: Dict[str, Tuple[str, ...]] = {
    "Fantasy": ("High Fantasy", "Urban Fantasy", "Dark Fantasy", "Epic Fantasy"),
    "Science Fiction": ("Space Opera", "Cyberpunk", "Post-Apocalyptic", "Hard Sci-Fi"),
    "Mystery": ("Detective", "Cozy Mystery", "Noir", "Thriller"),
    "Romance": ("Contemporary", "Historical", "Paranormal", "Romantic Comedy"),
    "Literary Fiction": ("Contemporary", "Historical", "Experimental", "Satire"),
}
THEME_OPTIONS = (
    "Coming of Age",
    "Redemption",
    "Love and Loss",
    "Power and Corruption",
    "Identity",
    "Good vs Evil",
)
SETTING_OPTIONS = (
    "Fantasy",
    "Urban",
    "Historical",
    "Futuristic",
    "Contemporary",
    "Post-Apocalyptic",
    "Space",
    "Rural",
)
CULTURAL_FRAMEWORKS = (
    "Western",
    "Eastern",
    "African",
    "Middle Eastern",
    "Latin American",
    "Nordic",
    "Mediterranean",
    "Indigenous",
    "Multicultural",
)
RESOLUTION_STYLES = ("Conclusive", "Open-Ended", "Twist", "Circular", "Bittersweet")

SLIDER_MIN = 1
SLIDER_MAX = 5
SLIDER_FALLBACK = 3

# Sliders and their defaults when the form leaves them blank.
SLIDER_DEFAULTS: Dict[str, int] = {
    "world_complexity": 3,
    "cultural_depth": 3,
    "tone_formality": 3,
    "tone_descriptive": 3,
    "dialogue_balance": 3,
    "description_density": 3,
    "pacing_overall": 3,
    "pacing_variance": 3,
    "emotional_intensity": 3,
    "metaphor_frequency": 3,
    "flashback_usage": 2,
    "foreshadowing_intensity": 3,
    "language_complexity": 3,
    "violence_level": 2,
    "adult_content_level": 1,
    "profanity_level": 1,
}


@dataclass(frozen=True)
class CharacterSpec:
    name: str
    role: str = "protagonist"
    archetype: str = "The Hero"
    age_range: str = "adult"
    background_archetype: str = ""
    arc_type: str = "coming_of_age"
    relationships: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["relationships"] = list(self.relationships)
        return data


@dataclass(frozen=True)
class NovelParameters:
    title: str
    primary_genre: str
    primary_theme: str
    characters: Tuple[CharacterSpec, ...]
    novel_length: str = "50k-100k"
    chapter_structure: str = "variable"
    average_chapter_length: int = 2500
    chapter_naming_style: str = "both"
    secondary_genre: Optional[str] = None
    secondary_theme: Optional[str] = None
    setting_type: str = "Contemporary"
    cultural_framework: str = "Western"
    pov: str = "third_limited"
    story_structure: str = "Three-Act Structure"
    conflict_types: Tuple[str, ...] = ("person_vs_self",)
    resolution_style: str = "Conclusive"
    sentence_structure: str = "varied"
    paragraph_length: str = "medium"
    controversial_handling: str = "careful"
    story_description: str = ""
    world_complexity: int = 3
    cultural_depth: int = 3
    tone_formality: int = 3
    tone_descriptive: int = 3
    dialogue_balance: int = 3
    description_density: int = 3
    pacing_overall: int = 3
    pacing_variance: int = 3
    emotional_intensity: int = 3
    metaphor_frequency: int = 3
    flashback_usage: int = 2
    foreshadowing_intensity: int = 3
    language_complexity: int = 3
    violence_level: int = 2
    adult_content_level: int = 1
    profanity_level: int = 1

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NovelParameters":
        """Validate raw form or JSON input and fill defaults.

        Required text fields and enumerations are hard errors collected into a
        single :class:`ParameterValidationError`. Sliders outside 1-5 are
        clamped to the midpoint with a warning, matching how the form has
        always treated them.
        """

        if not isinstance(payload, Mapping):
            raise ParameterValidationError(["Parameters must be an object."])

        problems: List[str] = []

        title = _text(payload.get("title"))
        primary_genre = _text(payload.get("primary_genre"))
        primary_theme = _text(payload.get("primary_theme"))
        if not title:
            problems.append("Title is required.")
        elif len(title) > 200:
            problems.append("Title must be 200 characters or fewer.")
        if not primary_genre:
            problems.append("Primary genre is required.")
        if not primary_theme:
            problems.append("Primary theme is required.")

        characters = _parse_characters(payload.get("characters"), problems)

        choices = {
            "novel_length": NOVEL_LENGTHS,
            "pov": POV_TYPES,
            "sentence_structure": SENTENCE_STRUCTURES,
            "paragraph_length": PARAGRAPH_LENGTHS,
            "controversial_handling": CONTROVERSIAL_HANDLING,
            "chapter_structure": CHAPTER_STRUCTURES,
            "chapter_naming_style": CHAPTER_NAMING_STYLES,
        }
        chosen: Dict[str, str] = {}
        for name, allowed in choices.items():
            value = _text(payload.get(name)) or _default_for(name)
            if value not in allowed:
                problems.append(f"Invalid {name.replace('_', ' ')}: {value!r}.")
            chosen[name] = value

        conflict_types = tuple(
            _text(item) for item in (payload.get("conflict_types") or []) if _text(item)
        ) or ("person_vs_self",)
        unknown_conflicts = [item for item in conflict_types if item not in CONFLICT_TYPES]
        if unknown_conflicts:
            problems.append(f"Unknown conflict types: {', '.join(unknown_conflicts)}.")

        average_length = _integer(payload.get("average_chapter_length"), 2500)
        if average_length is None or not 500 <= average_length <= 10000:
            problems.append("Average chapter length must be between 500 and 10000 words.")

        sliders: Dict[str, int] = {}
        for name, default in SLIDER_DEFAULTS.items():
            value = _integer(payload.get(name), default)
            if value is None:
                problems.append(f"{name.replace('_', ' ').capitalize()} must be a whole number.")
                continue
            if not SLIDER_MIN <= value <= SLIDER_MAX:
                LOGGER.warning("Invalid %s value: %s. Setting to %s.", name, value, SLIDER_FALLBACK)
                value = SLIDER_FALLBACK
            sliders[name] = value

        if problems:
            raise ParameterValidationError(problems)

        return cls(
            title=title,
            primary_genre=primary_genre,
            primary_theme=primary_theme,
            characters=characters,
            average_chapter_length=average_length,
            secondary_genre=_text(payload.get("secondary_genre")) or None,
            secondary_theme=_text(payload.get("secondary_theme")) or None,
            setting_type=_text(payload.get("setting_type")) or "Contemporary",
            cultural_framework=_text(payload.get("cultural_framework")) or "Western",
            story_structure=_text(payload.get("story_structure")) or "Three-Act Structure",
            conflict_types=conflict_types,
            resolution_style=_text(payload.get("resolution_style")) or "Conclusive",
            story_description=_text(payload.get("story_description")),
            **chosen,
            **sliders,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NovelParameters":
        """Rebuild parameters already stored on a job without re-running validation."""

        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        values["characters"] = tuple(
            CharacterSpec(
                **{
                    **character,
                    "relationships": tuple(character.get("relationships") or ()),
                }
            )
            for character in data.get("characters") or ()
        )
        values["conflict_types"] = tuple(data.get("conflict_types") or ("person_vs_self",))
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["characters"] = [character.to_dict() for character in self.characters]
        data["conflict_types"] = list(self.conflict_types)
        return data


_FIELD_DEFAULTS = {
    "novel_length": "50k-100k",
    "pov": "third_limited",
    "sentence_structure": "varied",
    "paragraph_length": "medium",
    "controversial_handling": "careful",
    "chapter_structure": "variable",
    "chapter_naming_style": "both",
}


def _default_for(name: str) -> str:
    return _FIELD_DEFAULTS[name]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _integer(value: Any, default: int) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_characters(raw: Any, problems: List[str]) -> Tuple[CharacterSpec, ...]:
    if not isinstance(raw, (list, tuple)) or not raw:
        problems.append("At least one character is required.")
        return ()

    characters: List[CharacterSpec] = []
    for position, item in enumerate(raw, start=1):
        if not isinstance(item, Mapping):
            problems.append(f"Character {position} must be an object.")
            continue
        name = _text(item.get("name"))
        if not name:
            problems.append(f"Character {position} needs a name.")
            continue
        role = _text(item.get("role")) or "supporting"
        if role not in CHARACTER_ROLES:
            problems.append(f"Character {position} has an invalid role: {role!r}.")
        arc_type = _text(item.get("arc_type")) or "static"
        if arc_type not in ARC_TYPES:
            problems.append(f"Character {position} has an invalid arc type: {arc_type!r}.")
        relationships = item.get("relationships") or ()
        if isinstance(relationships, str):
            relationships = [part for part in relationships.split(",")]
        characters.append(
            CharacterSpec(
                name=name,
                role=role,
                archetype=_text(item.get("archetype")) or "The Hero",
                age_range=_text(item.get("age_range")) or "adult",
                background_archetype=_text(item.get("background_archetype")),
                arc_type=arc_type,
                relationships=tuple(_text(rel) for rel in relationships if _text(rel)),
            )
        )
    return tuple(characters)


__all__ = [
    "ARC_TYPES",
    "CHARACTER_ROLES",
    "CONFLICT_TYPES",
    "CULTURAL_FRAMEWORKS",
    "CharacterSpec",
    "GENRE_OPTIONS",
    "NOVEL_LENGTHS",
    "NovelParameters",
    "POV_TYPES",
    "RESOLUTION_STYLES",
    "SETTING_OPTIONS",
    "SLIDER_DEFAULTS",
    "THEME_OPTIONS",
]
