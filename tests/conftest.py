"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from consent_pilot.config import EngineSettings, KnownSites, PilotConfig
from consent_pilot.context import create_context

from fakes import FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_ctx(clock):
    """Factory for an engine context on the fake clock.

    Keyword arguments override EngineSettings fields; ``features`` and
    ``known_sites`` pass through to the config.
    """

    def _make(features: dict | None = None, known_sites: KnownSites | None = None, **engine):
        config = PilotConfig(
            engine=EngineSettings(**engine),
            features=features or {},
            known_sites=known_sites or KnownSites(),
        )
        return create_context(config, clock=clock, sleep=clock.sleep)

    return _make


@pytest.fixture()
def ctx(make_ctx):
    return make_ctx()
