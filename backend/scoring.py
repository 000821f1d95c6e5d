from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Tuple

COMPONENTS = (
    "innovation",
    "feasibility",
    "technical_depth",
    "presentation_clarity",
    "social_impact",
)
DEFAULT_WEIGHT = 20
COMPONENT_MIN = 0
COMPONENT_MAX = 10


class ScoringError(ValueError):
    pass


@dataclass(frozen=True)
class RankedTeam:
    rank: int
    team_id: int
    total_score: float


def default_weights() -> Dict[str, int]:
    return {name: DEFAULT_WEIGHT for name in COMPONENTS}


def _format_sum(total) -> str:
    if float(total).is_integer():
        return str(int(total))
    return str(total)


def validate_weights(weights: Mapping[str, float]) -> None:
    for name in COMPONENTS:
        if weights.get(name, 0) < 0:
            raise ScoringError(f"{name} weight cannot be negative")
    total = sum(weights.get(name, 0) for name in COMPONENTS)
    if total != 100:
        raise ScoringError(f"Weights must sum to 100. Current sum: {_format_sum(total)}")


def validate_components(components: Mapping[str, float]) -> None:
    for name in COMPONENTS:
        value = components.get(name)
        if value is None or value < COMPONENT_MIN or value > COMPONENT_MAX:
            raise ScoringError(f"{name} must be between {COMPONENT_MIN} and {COMPONENT_MAX}")


def compute_weighted_total(components: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Sum of component * weight / 100 over the five rubric components, rounded to 2 places."""
    total = sum(float(components.get(name, 0)) * float(weights.get(name, 0)) for name in COMPONENTS)
    return round(total / 100, 2)


def score_rubric(components: Mapping[str, float], weights: Mapping[str, float]) -> float:
    validate_weights(weights)
    validate_components(components)
    return compute_weighted_total(components, weights)


def rank_teams(scores: Iterable[Tuple[int, float]], limit: int = None) -> List[RankedTeam]:
    ordered = sorted(scores, key=lambda item: (-float(item[1]), item[0]))
    if limit is not None:
        ordered = ordered[:max(limit, 0)]
    return [
        RankedTeam(rank=index, team_id=team_id, total_score=float(total))
        for index, (team_id, total) in enumerate(ordered, start=1)
    ]


def average(values: Iterable[float]) -> float:
    values = [float(v) for v in values]
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)
