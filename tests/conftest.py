"""
Pytest configuration and shared fixtures for dashgate.
"""
import random
from datetime import datetime, timezone

import pytest
from hypothesis import settings, Verbosity

from dashgate.integrations.webhook import WebhookNotifier
from dashgate.models.pipeline import PipelineConfig
from dashgate.session.draft import DraftSession

settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    verbosity=Verbosity.verbose,
)

settings.load_profile("default")


NOW = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def session():
    """A session with a seeded RNG and a webhook that always delivers."""
    rng = random.Random(7)
    return DraftSession(
        settings=PipelineConfig(),
        webhook=WebhookNotifier(success_rate=1.0, rng=rng),
        rng=rng,
    )
