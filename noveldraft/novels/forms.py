from typing import Any, Dict

from flask_wtf import FlaskForm
from wtforms import (
    Form,
    FieldList,
    FormField,
    IntegerField,
    SelectField,
    SelectMultipleField,
    StringField,
    SubmitField,
    TextAreaField,
)
from wtforms.validators import InputRequired, Length, Optional

from ..services.parameters import (
    ARC_TYPES,
    CHARACTER_ROLES,
    CONFLICT_TYPES,
    CULTURAL_FRAMEWORKS,
    GENRE_OPTIONS,
    NOVEL_LENGTHS,
    POV_TYPES,
    RESOLUTION_STYLES,
    SETTING_OPTIONS,
    SLIDER_DEFAULTS,
    THEME_OPTIONS,
)


def _choices(values):
    return [(value, value.replace("_", " ").title()) for value in values]


class CharacterForm(Form):
    name = StringField("Name", validators=[Optional(), Length(max=120)])
    role = SelectField("Role", choices=_choices(CHARACTER_ROLES), default="protagonist")
    archetype = StringField("Archetype", validators=[Optional(), Length(max=120)], default="The Hero")
    age_range = StringField("Age range", validators=[Optional(), Length(max=60)], default="adult")
    arc_type = SelectField("Arc", choices=_choices(ARC_TYPES), default="coming_of_age")
    relationships = StringField(
        "Relationships",
        validators=[Optional(), Length(max=500)],
        description="Comma-separated",
    )


class NovelParametersForm(FlaskForm):
    title = StringField("Title", validators=[InputRequired(), Length(max=200)])
    novel_length = SelectField("Length", choices=_choices(NOVEL_LENGTHS), default="50k-100k")
    average_chapter_length = IntegerField("Average chapter length (words)", default=2500, validators=[Optional()])
    primary_genre = SelectField("Primary genre", choices=_choices(GENRE_OPTIONS), validators=[InputRequired()])
    secondary_genre = StringField("Sub-genre", validators=[Optional(), Length(max=80)])
    primary_theme = SelectField("Primary theme", choices=_choices(THEME_OPTIONS), validators=[InputRequired()])
    secondary_theme = StringField("Secondary theme", validators=[Optional(), Length(max=80)])
    setting_type = SelectField("Setting", choices=_choices(SETTING_OPTIONS), default="Contemporary")
    cultural_framework = SelectField(
        "Cultural framework", choices=_choices(CULTURAL_FRAMEWORKS), default="Western"
    )
    pov = SelectField("Point of view", choices=_choices(POV_TYPES), default="third_limited")
    story_structure = StringField("Story structure", default="Three-Act Structure", validators=[Length(max=80)])
    conflict_types = SelectMultipleField(
        "Conflict types", choices=_choices(CONFLICT_TYPES), default=["person_vs_self"]
    )
    resolution_style = SelectField(
        "Resolution", choices=_choices(RESOLUTION_STYLES), default="Conclusive"
    )
    story_description = TextAreaField("Story description", validators=[Optional(), Length(max=5000)])
    characters = FieldList(FormField(CharacterForm), min_entries=1, max_entries=12)

    # Sliders are clamped server-side, so the form accepts any whole number.
    world_complexity = IntegerField("World complexity", default=SLIDER_DEFAULTS["world_complexity"], validators=[Optional()])
    tone_formality = IntegerField("Tone formality", default=SLIDER_DEFAULTS["tone_formality"], validators=[Optional()])
    pacing_overall = IntegerField("Pacing", default=SLIDER_DEFAULTS["pacing_overall"], validators=[Optional()])
    emotional_intensity = IntegerField(
        "Emotional intensity", default=SLIDER_DEFAULTS["emotional_intensity"], validators=[Optional()]
    )
    language_complexity = IntegerField(
        "Language complexity", default=SLIDER_DEFAULTS["language_complexity"], validators=[Optional()]
    )
    violence_level = IntegerField("Violence", default=SLIDER_DEFAULTS["violence_level"], validators=[Optional()])
    adult_content_level = IntegerField(
        "Adult content", default=SLIDER_DEFAULTS["adult_content_level"], validators=[Optional()]
    )
    profanity_level = IntegerField("Profanity", default=SLIDER_DEFAULTS["profanity_level"], validators=[Optional()])

    submit = SubmitField("Start generation")

    SLIDER_FIELDS = (
        "world_complexity",
        "tone_formality",
        "pacing_overall",
        "emotional_intensity",
        "language_complexity",
        "violence_level",
        "adult_content_level",
        "profanity_level",
    )

    def to_payload(self) -> Dict[str, Any]:
        """Shape the submitted data the way the JSON endpoint receives it."""

        payload: Dict[str, Any] = {
            "title": self.title.data,
            "novel_length": self.novel_length.data,
            "average_chapter_length": self.average_chapter_length.data,
            "primary_genre": self.primary_genre.data,
            "secondary_genre": self.secondary_genre.data,
            "primary_theme": self.primary_theme.data,
            "secondary_theme": self.secondary_theme.data,
            "setting_type": self.setting_type.data,
            "cultural_framework": self.cultural_framework.data,
            "pov": self.pov.data,
            "story_structure": self.story_structure.data,
            "conflict_types": list(self.conflict_types.data or []),
            "resolution_style": self.resolution_style.data,
            "story_description": self.story_description.data,
            "characters": [
                entry.data for entry in self.characters.entries if (entry.data.get("name") or "").strip()
            ],
        }
        for name in self.SLIDER_FIELDS:
            payload[name] = getattr(self, name).data
        return payload
