import random

import pytest

from app.services.player_store import PlayerStore
from app.services.session_store import SessionRegistry


def seeded_registry(seed: int) -> SessionRegistry:
    """Registre dont les tirages de rôles sont reproductibles."""
    rng = random.Random(seed)
    return SessionRegistry(store_factory=lambda: PlayerStore(rng=rng))


@pytest.fixture
def registry() -> SessionRegistry:
    return seeded_registry(1234)


@pytest.fixture
def session(registry):
    return registry.create()
