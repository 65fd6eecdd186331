"""Blended relevance/recency ranking.

    rank = relevance_weight * relevance + recency_weight * decay(age)
    decay(age) = half_life / (half_life + age)

``decay`` is 1.0 for brand new rows, 0.5 at one half-life and never increases
with age. The same formula is available as a Python function (used for tests
and for ranking outside the store) and as a SQL expression so the store can
order rows without fetching them.
"""

from dataclasses import dataclass

from unified_search.config import SearchConfig


@dataclass(frozen=True)
class RankWeights:
    relevance: float = 0.7
    recency: float = 0.3

    @classmethod
    def from_config(cls, config: SearchConfig) -> "RankWeights":
        return cls(config.relevance_weight, config.recency_weight).normalized()

    def normalized(self) -> "RankWeights":
        """Scale the weights to sum to 1 so ranks stay within [0, 1]."""
        total = self.relevance + self.recency
        if total <= 0:
            return RankWeights(1.0, 0.0)
        return RankWeights(self.relevance / total, self.recency / total)


DEFAULT_WEIGHTS = RankWeights()


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def recency_decay(age_seconds: float, half_life_seconds: float) -> float:
    if half_life_seconds <= 0:
        raise ValueError("half_life_seconds must be positive")
    age_seconds = max(age_seconds, 0.0)
    return half_life_seconds / (half_life_seconds + age_seconds)


def blended_rank(
    relevance: float,
    age_seconds: float,
    half_life_seconds: float,
    weights: RankWeights = DEFAULT_WEIGHTS,
) -> float:
    """Combine a [0, 1] relevance score with recency decay.

    Future timestamps count as age zero.
    """
    decay = recency_decay(age_seconds, half_life_seconds)
    return _clamp(weights.relevance * _clamp(relevance) + weights.recency * decay)


def rank_sql(
    relevance_expr: str,
    age_seconds_expr: str,
    half_life_seconds: float,
    weights: RankWeights = DEFAULT_WEIGHTS,
) -> str:
    """SQL equivalent of ``blended_rank``.

    Weights and half-life come from configuration, never from the request, so
    they are rendered as float literals. ``age_seconds_expr`` must already be
    clamped at zero.
    """
    half_life = float(half_life_seconds)
    if half_life <= 0:
        raise ValueError("half_life_seconds must be positive")
    return (
        f"({float(weights.relevance):.6f} * ({relevance_expr}) + "
        f"{float(weights.recency):.6f} * ({half_life:.1f} / ({half_life:.1f} + ({age_seconds_expr}))))"
    )
