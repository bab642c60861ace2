from __future__ import annotations

from pathlib import Path

import pytest

from scopemap.io_utils import load_json
from scopemap.types import GeneratedRange, OriginalScope, Position, ScopeInfo, scope_info_from_dict

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def load_fixture_info(name: str) -> ScopeInfo:
    return scope_info_from_dict(load_json(FIXTURES / name))


def function_example() -> ScopeInfo:
    """One function scope and one range mapping it, with one variable binding."""
    scope = OriginalScope(
        start=Position(0, 0),
        end=Position(10, 1),
        kind="function",
        name="f",
        variables=["x"],
    )
    range_ = GeneratedRange(
        start=Position(0, 0),
        end=Position(10, 1),
        original_scope=scope,
        values=["a"],
    )
    return ScopeInfo(scopes=[scope], ranges=[range_])


@pytest.fixture
def nested_info() -> ScopeInfo:
    return load_fixture_info("nested_program.json")


@pytest.fixture
def example_info() -> ScopeInfo:
    return function_example()
