"""Wire the generation services to the current Flask application."""

from __future__ import annotations

from flask import Flask, current_app

from .errors import GeneratorConfigurationError
from .orchestrator import Orchestrator
from .settings import SETTINGS_EXTENSION_KEY, GenerationSettings
from .step_executor import StepExecutor
from .store import JobStore
from .text_generation import TextGenerator, UnavailableGenerator, build_text_generator

GENERATOR_EXTENSION_KEY = "noveldraft.text_generator"


def init_generation(app: Flask) -> GenerationSettings:
    """Validate generation settings once and keep them on the app."""

    settings = GenerationSettings.from_mapping(app.config)
    app.extensions[SETTINGS_EXTENSION_KEY] = settings
    return settings


def get_settings() -> GenerationSettings:
    settings = current_app.extensions.get(SETTINGS_EXTENSION_KEY)
    if settings is None:
        settings = init_generation(current_app)
    return settings


def get_text_generator() -> TextGenerator:
    cached = current_app.extensions.get(GENERATOR_EXTENSION_KEY)
    if cached is not None:
        return cached

    try:
        generator = build_text_generator(get_settings())
    except GeneratorConfigurationError as exc:
        current_app.logger.warning("Text generator unavailable: %s", exc)
        generator = UnavailableGenerator(str(exc))

    current_app.extensions[GENERATOR_EXTENSION_KEY] = generator
    return generator


def get_job_store() -> JobStore:
    return JobStore()


def get_orchestrator() -> Orchestrator:
    settings = get_settings()
    store = get_job_store()
    executor = StepExecutor(store, get_text_generator(), settings)
    return Orchestrator(store, executor, settings)
