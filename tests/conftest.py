# tests/conftest.py
import sys
from pathlib import Path

import pytest

# Make the package importable without installing it
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pyreducex import combine_reducers, create_store, get_action_type


def counter(state=None, action=None):
    if state is None:
        return 0
    action_type = get_action_type(action)
    if action_type == "INCREMENT":
        return state + 1
    if action_type == "DECREMENT":
        return state - 1
    return state


def loading(state=None, action=None):
    if state is None:
        return False
    if get_action_type(action) == "LOADING":
        return action["value"]
    return state


@pytest.fixture
def counter_reducer():
    return counter


@pytest.fixture
def root_reducer():
    return combine_reducers({"count": counter, "loading": loading})


@pytest.fixture
def store(root_reducer):
    # Fresh store per test
    return create_store(root_reducer)
