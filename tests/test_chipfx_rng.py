from __future__ import annotations

from chipfx.rng import MAX_SEED, NOISE_TABLE_SIZE, RandomSource


def test_same_seed_gives_same_sequence() -> None:
    a = RandomSource(42)
    b = RandomSource(42)
    assert [a.value(0, 1000) for _ in range(20)] == [b.value(0, 1000) for _ in range(20)]


def test_reseed_restarts_sequence() -> None:
    rng = RandomSource(5)
    first = [rng.frnd(1.0) for _ in range(5)]
    rng.seed(5)
    assert [rng.frnd(1.0) for _ in range(5)] == first


def test_value_bounds_are_inclusive() -> None:
    rng = RandomSource(1)
    seen = {rng.value(0, 2) for _ in range(300)}
    assert seen == {0, 1, 2}


def test_frnd_and_jitter_ranges() -> None:
    rng = RandomSource(2)
    for _ in range(500):
        assert 0.0 <= rng.frnd(0.5) <= 0.5
        assert -0.05 <= rng.jitter(0.05) <= 0.05


def test_random_seed_is_never_zero() -> None:
    rng = RandomSource(9)
    for _ in range(500):
        assert 1 <= rng.random_seed() <= MAX_SEED


def test_noise_table_shape_and_range() -> None:
    table = RandomSource(3).noise_table()
    assert len(table) == NOISE_TABLE_SIZE
    assert all(-1.0 <= value <= 1.0 for value in table)


def test_negative_seeds_are_accepted() -> None:
    rng = RandomSource(-1)
    rng.seed(-12345)
    assert rng.last_seed is not None and rng.last_seed >= 0
