"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tokensmith.config import Config  # noqa: E402
from tokensmith.token_engine import TokenEngine, TokenStore, generate_scale  # noqa: E402


BLUE_SEED = "#4169e1"


@pytest.fixture(autouse=True)
def reset_config():
    """Keep the cached configuration from leaking between tests."""
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def store():
    return TokenStore()


@pytest.fixture
def blue_steps():
    return generate_scale(BLUE_SEED)


@pytest.fixture
def engine():
    """Engine with automatic scans disabled; tests trigger scans explicitly."""
    return TokenEngine(auto_scan=False)


@pytest.fixture
def live_engine():
    """Engine that re-checks compliance pairs after every write batch."""
    return TokenEngine(auto_scan=True)


@pytest.fixture
def token_document(blue_steps):
    """A small token document with one scale, semantic tokens and a pair."""
    return {
        "tokens": {
            "colors": {
                "scale-01": {
                    "alias": "blue",
                    **{step: {"$value": value} for step, value in blue_steps.items()},
                },
            },
            "surface": {"base": {"$value": "#ffffff", "$type": "color"}},
            "text": {"primary": {"$value": "{colors.blue.500}"}},
            "size": {
                "2x": {"$value": "8px"},
                "4x": {"$value": "16px", "$type": "dimension"},
            },
            "spacing": {"inset": {"$value": "{size.4x} {size.2x}"}},
        },
        "compliance": [
            {"foreground": "text.primary", "background": "surface.base", "minimum_ratio": 4.5},
        ],
    }
