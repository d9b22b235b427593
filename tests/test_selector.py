import random
from collections import Counter
from types import SimpleNamespace

from assessment.selector import assemble_exam, difficulty_targets, select_questions
from database.schemas import DifficultyDistribution, ExamConfig


def make_pool(easy=0, medium=0, hard=0, other=0, start=1):
    pool = []
    next_id = start
    for difficulty, n in (("easy", easy), ("medium", medium), ("hard", hard), ("expert", other)):
        for _ in range(n):
            pool.append(SimpleNamespace(id=next_id, difficulty=difficulty))
            next_id += 1
    return pool


DEFAULT_SPLIT = DifficultyDistribution(easy=30, medium=50, hard=20)


def test_targets_add_up_to_count():
    assert difficulty_targets(10, DEFAULT_SPLIT) == {"easy": 3, "medium": 5, "hard": 2}
    for count in range(0, 40):
        assert sum(difficulty_targets(count, DEFAULT_SPLIT).values()) == count


def test_targets_round_half_up():
    split = DifficultyDistribution(easy=25, medium=50, hard=25)
    # 0.5 rounds up on both ends; medium absorbs the difference
    assert difficulty_targets(2, split) == {"easy": 1, "medium": 0, "hard": 1}


def test_ten_items_match_difficulty_split():
    pool = make_pool(easy=10, medium=10, hard=10)
    picked = select_questions(pool, 10, DEFAULT_SPLIT, rng=random.Random(7))

    assert len(picked) == 10
    assert len({q.id for q in picked}) == 10
    assert Counter(q.difficulty for q in picked) == {"easy": 3, "medium": 5, "hard": 2}


def test_short_bucket_is_backfilled():
    pool = make_pool(easy=1, medium=10, hard=10)
    picked = select_questions(pool, 10, DEFAULT_SPLIT, rng=random.Random(1))

    assert len(picked) == 10
    assert len({q.id for q in picked}) == 10
    assert Counter(q.difficulty for q in picked)["easy"] == 1


def test_small_pool_under_fills():
    pool = make_pool(easy=2, medium=2, hard=1)
    picked = select_questions(pool, 10, DEFAULT_SPLIT, rng=random.Random(3))

    assert sorted(q.id for q in picked) == [q.id for q in pool]


def test_unknown_difficulty_counts_as_medium():
    pool = make_pool(other=5)
    split = DifficultyDistribution(easy=0, medium=100, hard=0)
    picked = select_questions(pool, 5, split, rng=random.Random(0))
    assert len(picked) == 5


def test_duplicate_ids_in_pool_are_ignored():
    pool = make_pool(medium=3)
    picked = select_questions(pool + pool, 6, DEFAULT_SPLIT, rng=random.Random(0))
    assert len(picked) == 3


def test_empty_inputs():
    assert select_questions([], 5, DEFAULT_SPLIT) == []
    assert select_questions(make_pool(easy=3), 0, DEFAULT_SPLIT) == []


def test_assemble_exam_draws_every_section():
    pools = {
        "verbal": make_pool(easy=5, medium=5, hard=5, start=1),
        "numerical": make_pool(easy=5, medium=5, hard=5, start=100),
    }
    config = ExamConfig(
        total_items=10,
        section_distribution=[{"section": "Verbal", "count": 4}, {"section": "numerical", "count": 6}],
    )
    picked = assemble_exam(config, pools.__getitem__, rng=random.Random(11))

    ids = [q.id for q in picked]
    assert len(ids) == 10
    assert len(set(ids)) == 10
    assert sum(1 for i in ids if i < 100) == 4
    assert sum(1 for i in ids if i >= 100) == 6


def test_assemble_exam_under_fill_is_allowed():
    config = ExamConfig(total_items=8, section_distribution=[{"section": "verbal", "count": 8}])
    picked = assemble_exam(config, lambda section: make_pool(easy=1, medium=1), rng=random.Random(2))
    assert len(picked) == 2
