"""
Ranker

Turns raw oracle candidates into the ranked recommendation list stored for a
counsel request. Deterministic: same candidates in, same ranks out.
"""

import logging
from typing import Dict, List

from .contracts import OracleCandidate, RankedRecommendation
from .constants import MAX_RECOMMENDATIONS, HIGH_SCORE_THRESHOLD
from .errors import InsufficientInformation

logger = logging.getLogger(__name__)


def dedupe_candidates(candidates: List[OracleCandidate]) -> List[OracleCandidate]:
    """
    Keep one entry per institution, the best-scoring one.
    On equal scores the first occurrence wins.
    """
    best: Dict[str, OracleCandidate] = {}
    for candidate in candidates:
        seen = best.get(candidate.institution_id)
        if seen is None or candidate.score > seen.score:
            best[candidate.institution_id] = candidate
    if len(best) < len(candidates):
        logger.warning(f"Dropped {len(candidates) - len(best)} duplicate oracle candidates")
    return list(best.values())


def sort_candidates(candidates: List[OracleCandidate]) -> List[OracleCandidate]:
    """Score descending, ties broken by institution id ascending."""
    return sorted(candidates, key=lambda c: (-c.score, c.institution_id))


def rank_candidates(
    candidates: List[OracleCandidate],
    max_total: int = MAX_RECOMMENDATIONS,
    high_score_threshold: float = HIGH_SCORE_THRESHOLD,
) -> List[RankedRecommendation]:
    """
    Rank oracle candidates for persistence.

    Args:
        candidates: Oracle output, any order
        max_total: How many ranked rows to keep
        high_score_threshold: Minimum score flagged as a confident match

    Returns:
        Ranked recommendations with contiguous ranks 1..N

    Raises:
        InsufficientInformation: The oracle produced no candidates
    """
    if not candidates:
        raise InsufficientInformation(
            "No counseling institutions could be recommended for this request"
        )

    ordered = sort_candidates(dedupe_candidates(candidates))[:max_total]

    return [
        RankedRecommendation(
            institution_id=c.institution_id,
            score=c.score,
            reason=c.reason.strip(),
            rank=position,
            is_high_score=c.score >= high_score_threshold,
        )
        for position, c in enumerate(ordered, start=1)
    ]
