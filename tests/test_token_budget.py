"""Tests for token_budget module."""

from __future__ import annotations

import pytest

from rhapsody.token_budget import TokenBudget, estimate_tokens


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("a") == 1


def test_estimate_tokens_empty() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0


def test_budget_rejects_non_positive_max() -> None:
    with pytest.raises(ValueError, match="positive"):
        TokenBudget(0)


def test_budget_consume() -> None:
    budget = TokenBudget(100)
    budget.consume(30)
    assert budget.consumed == 30
    assert budget.is_within_budget()


def test_budget_consume_text_returns_estimate() -> None:
    budget = TokenBudget(10)
    assert budget.consume_text("x" * 12) == 3
    assert budget.consumed == 3


def test_budget_exactly_at_max_is_within() -> None:
    budget = TokenBudget(10)
    budget.consume(10)
    assert budget.is_within_budget()


def test_budget_over_max_is_not_within() -> None:
    budget = TokenBudget(10)
    budget.consume(15)
    assert not budget.is_within_budget()


def test_budget_near_limit() -> None:
    budget = TokenBudget(100)
    budget.consume(80)
    assert not budget.is_near_limit()
    budget.consume(1)
    assert budget.is_near_limit()
    assert budget.max_tokens == 100
