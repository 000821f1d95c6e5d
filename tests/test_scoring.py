from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from scoring import (
    ScoringError,
    average,
    compute_weighted_total,
    default_weights,
    rank_teams,
    score_rubric,
    validate_weights,
)


def _components(value):
    return {
        "innovation": value,
        "feasibility": value,
        "technical_depth": value,
        "presentation_clarity": value,
        "social_impact": value,
    }


def test_default_weights_sum_to_100():
    assert sum(default_weights().values()) == 100


def test_weighted_total_with_equal_weights():
    assert compute_weighted_total(_components(8), default_weights()) == 8.0


def test_weighted_total_with_uneven_weights():
    components = {
        "innovation": 10,
        "feasibility": 5,
        "technical_depth": 7,
        "presentation_clarity": 3,
        "social_impact": 9,
    }
    weights = {
        "innovation": 40,
        "feasibility": 10,
        "technical_depth": 20,
        "presentation_clarity": 10,
        "social_impact": 20,
    }
    # (400 + 50 + 140 + 30 + 180) / 100
    assert compute_weighted_total(components, weights) == 8.0
    assert score_rubric(components, weights) == compute_weighted_total(components, weights)


def test_weights_must_sum_to_100():
    weights = default_weights()
    weights["social_impact"] = 10
    with pytest.raises(ScoringError) as excinfo:
        validate_weights(weights)
    assert str(excinfo.value) == "Weights must sum to 100. Current sum: 90"


def test_component_out_of_range_rejected():
    components = _components(5)
    components["feasibility"] = 11
    with pytest.raises(ScoringError, match="feasibility must be between 0 and 10"):
        score_rubric(components, default_weights())


def test_rank_teams_orders_by_score_then_team_id():
    ranked = rank_teams([(3, 7.5), (1, 9.0), (2, 7.5), (4, 1.0)])
    assert [(r.rank, r.team_id) for r in ranked] == [(1, 1), (2, 2), (3, 3), (4, 4)]


def test_rank_teams_limit_and_idempotence():
    scores = [(10, 4.0), (11, 6.0), (12, 5.0)]
    first = rank_teams(scores, limit=2)
    second = rank_teams(list(reversed(scores)), limit=2)
    assert first == second
    assert [r.team_id for r in first] == [11, 12]


def test_average():
    assert average([7, 8, 9]) == 8.0
    assert average([]) == 0.0
    assert average([1, 2]) == 1.5


def test_negative_weight_rejected_even_when_sum_is_100():
    weights = {
        "innovation": -10,
        "feasibility": 50,
        "technical_depth": 20,
        "presentation_clarity": 20,
        "social_impact": 20,
    }
    with pytest.raises(ScoringError, match="innovation weight cannot be negative"):
        validate_weights(weights)
