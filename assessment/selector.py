"""
Step 1: Question Pool Selector

Draws a randomized, difficulty-weighted subset of questions for one exam
section, then assembles all sections of an exam definition into one
delivery order.

Under-fill policy: when the pool is smaller than the requested count, fewer
questions are returned. Callers must not assume exact counts.
"""

import logging
import math
import random
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from database.schemas import DifficultyDistribution, ExamConfig

log = logging.getLogger("assessment.pipeline")

T = TypeVar("T")

DIFFICULTIES = ("easy", "medium", "hard")


def _difficulty_of(question) -> str:
    """Bucket key for a question. Missing or unknown difficulty counts as medium."""
    raw = getattr(question, "difficulty", None)
    d = raw.strip().lower() if isinstance(raw, str) else ""
    return d if d in DIFFICULTIES else "medium"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def difficulty_targets(count: int, distribution: DifficultyDistribution) -> Dict[str, int]:
    """
    Per-bucket targets that always add up to `count`.
    Easy and hard are rounded; medium takes the remainder.
    """
    easy = _round_half_up(distribution.easy / 100 * count)
    hard = _round_half_up(distribution.hard / 100 * count)
    # Rounding both ends up can overshoot on tiny counts
    if easy + hard > count:
        hard = max(0, count - easy)
        easy = min(easy, count)
    return {"easy": easy, "medium": count - easy - hard, "hard": hard}


def select_questions(
    pool: Sequence[T],
    count: int,
    distribution: DifficultyDistribution,
    rng: Optional[random.Random] = None,
) -> List[T]:
    """
    Select up to `count` distinct questions from `pool` matching the difficulty split.

    Args:
        pool: Candidate questions (anything with .id and .difficulty)
        count: Number of questions wanted
        distribution: Easy / medium / hard percentages
        rng: Random source (module random when omitted)

    Returns:
        min(count, len(pool)) questions, no duplicates
    """
    rng = rng or random
    if count <= 0 or not pool:
        return []

    targets = difficulty_targets(count, distribution)

    buckets: Dict[str, List[T]] = {d: [] for d in DIFFICULTIES}
    seen = set()
    for q in pool:
        if q.id in seen:
            continue
        seen.add(q.id)
        buckets[_difficulty_of(q)].append(q)

    selected: List[T] = []
    for d in DIFFICULTIES:
        rng.shuffle(buckets[d])
        selected.extend(buckets[d][:targets[d]])

    # A short bucket leaves a gap; backfill from whatever is left
    if len(selected) < count:
        used = {q.id for q in selected}
        remaining = [q for d in DIFFICULTIES for q in buckets[d] if q.id not in used]
        rng.shuffle(remaining)
        selected.extend(remaining[:count - len(selected)])

    return selected[:count]


def assemble_exam(
    config: ExamConfig,
    load_pool: Callable[[str], Sequence[T]],
    rng: Optional[random.Random] = None,
) -> List[T]:
    """
    Run the selector once per (section, count) target and shuffle the
    concatenation so delivery order does not reveal section grouping.

    Args:
        config: Validated exam configuration
        load_pool: Returns the eligible pool for a section name
        rng: Random source

    Returns:
        Selected questions in delivery order
    """
    rng = rng or random
    selected: List[T] = []
    for target in config.section_distribution:
        pool = load_pool(target.section)
        picked = select_questions(pool, target.count, config.difficulty_distribution, rng=rng)
        if len(picked) < target.count:
            log.warning(
                "Section '%s' under-filled: wanted %d, pool gave %d",
                target.section, target.count, len(picked),
            )
        selected.extend(picked)

    rng.shuffle(selected)
    return selected
