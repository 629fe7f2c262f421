import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from noveldraft import create_app
from noveldraft.config import TestConfig
from noveldraft.extensions import db
from noveldraft.models import User
from noveldraft.services import GENERATOR_EXTENSION_KEY
from noveldraft.services.parameters import NovelParameters
from noveldraft.services.settings import GenerationSettings
from noveldraft.services.store import JobStore

FILLER = (
    "The harbour lights flickered while the tide pulled at the old pilings, and every "
    "choice the crew made echoed across the water toward the waiting town. "
)


def make_outline(chapters: int = 10) -> str:
    sections = [f"Outline for The Salt Archive with {chapters} chapters."]
    for index in range(1, chapters + 1):
        sections.append(f"Chapter {index}: The tide turns\n{FILLER}")
    text = "\n".join(sections)
    while len(text) < 1200:
        text += "\n" + FILLER
    return text


def make_chapter(label: str = "draft") -> str:
    text = f"[{label}] "
    while len(text) < 1500:
        text += FILLER
    return text


def sample_payload(**overrides) -> dict:
    payload = {
        "title": "The Salt Archive",
        "primary_genre": "Mystery",
        "primary_theme": "Identity",
        "characters": [
            {
                "name": "Mara Quell",
                "role": "protagonist",
                "archetype": "The Seeker",
                "age_range": "adult",
                "arc_type": "internal_discovery",
                "relationships": ["Tomas"],
            }
        ],
    }
    payload.update(overrides)
    return payload


class ScriptedGenerator:
    """Answers by prompt kind; ``overrides`` can replace any kind with a callable."""

    def __init__(self, chapters: int = 10, **overrides: Callable[[str], str]) -> None:
        self.prompts: List[str] = []
        self.kinds: List[str] = []
        self.chapters = chapters
        self.overrides = overrides

    @staticmethod
    def kind_of(prompt: str) -> str:
        if "[INTEGRATION NOTES - OUTLINE]" in prompt:
            return "outline"
        if "developmental editor" in prompt:
            return "outline_revision"
        if "Draft A:" in prompt:
            return "comparison"
        if "[INTEGRATION NOTES - CHAPTER" in prompt:
            return "chapter"
        return "chapter_revision"

    def generate(self, prompt: str, *, max_tokens: int, temperature: float) -> str:
        kind = self.kind_of(prompt)
        self.prompts.append(prompt)
        self.kinds.append(kind)
        if kind in self.overrides:
            return self.overrides[kind](prompt)
        if kind in ("outline", "outline_revision"):
            return make_outline(self.chapters)
        if kind == "comparison":
            return "Draft A is steadier.\nCHOSEN: Draft A"
        return make_chapter(kind)


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture
def user(app_instance):
    user = User(email="writer@example.com", display_name="Test Writer")
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def store(app_instance):
    return JobStore()


@pytest.fixture
def settings():
    return GenerationSettings(api_key="", max_retries=3, retry_delay=0.0)


@pytest.fixture
def job(store, user):
    return store.create(user.id, NovelParameters.from_payload(sample_payload()))


@pytest.fixture
def install_generator(app_instance):
    def _install(generator: Optional[object] = None) -> ScriptedGenerator:
        generator = generator or ScriptedGenerator()
        app_instance.extensions[GENERATOR_EXTENSION_KEY] = generator
        return generator

    return _install


def login(client, user):
    client.post(
        "/login",
        data={"email": user.email, "password": "password123"},
        follow_redirects=True,
    )
