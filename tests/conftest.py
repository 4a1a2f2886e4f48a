"""
Pytest fixtures and configuration for the PagePilot test suite.
"""

import pytest
import numpy as np


@pytest.fixture(autouse=True)
def isolated_globals(monkeypatch):
    """Keep every test on a fresh in-memory store and fresh global singletons."""
    monkeypatch.setenv("PAGEPILOT_STORE_BACKEND", "memory")

    from pagepilot.storage import reset_store, reset_storage_config
    from pagepilot.routing import reset_router_config, reset_strategy_bandit, reset_expert_bandit
    from pagepilot.sections import reset_section_config, reset_section_bandit
    from pagepilot.design import reset_design_config
    from pagepilot.design.heuristics import get_heuristics
    from pagepilot.qa import reset_layout_config

    def reset_all():
        reset_storage_config()
        reset_store()
        reset_router_config()
        reset_strategy_bandit()
        reset_expert_bandit()
        reset_section_config()
        reset_section_bandit()
        reset_design_config()
        reset_layout_config()
        get_heuristics(force_reload=True)

    reset_all()
    yield
    reset_all()


@pytest.fixture
def memory_store():
    """A fresh in-memory key/value store."""
    from pagepilot.storage import InMemoryStore
    return InMemoryStore()


@pytest.fixture
def file_store(tmp_path):
    """A JSON file store rooted in a temporary directory."""
    from pagepilot.storage import JsonFileStore
    return JsonFileStore(store_dir=str(tmp_path / "store"))


@pytest.fixture
def rng():
    """Seeded Generator so bandit decisions are reproducible."""
    return np.random.default_rng(1234)
