import random

from bingo.services.rounds.numbers import POOL_SIZE, generate_pool, shuffle_pool


def test_generate_pool_has_five_groups_of_fifteen():
    pool = generate_pool()
    assert len(pool) == POOL_SIZE == 75
    assert len(set(pool)) == 75
    assert pool[0] == 'B-1' and pool[14] == 'B-15'
    assert pool[15] == 'I-16' and pool[29] == 'I-30'
    assert pool[30] == 'N-31' and pool[44] == 'N-45'
    assert pool[45] == 'G-46' and pool[59] == 'G-60'
    assert pool[60] == 'O-61' and pool[74] == 'O-75'
    for label in pool:
        letter, number = label.split('-')
        assert 'BINGO'.index(letter) == (int(number) - 1) // 15


def test_shuffle_is_a_permutation_and_leaves_input_alone():
    pool = generate_pool()
    original = list(pool)
    for _ in range(20):
        shuffled = shuffle_pool(pool)
        assert len(shuffled) == 75
        assert len(set(shuffled)) == 75
        assert set(shuffled) == set(pool)
    assert pool == original


def test_shuffle_is_deterministic_with_seeded_rng():
    pool = generate_pool()
    first = shuffle_pool(pool, random.Random(42))
    second = shuffle_pool(pool, random.Random(42))
    assert first == second
    assert first != pool


def test_shuffle_handles_tiny_inputs():
    assert shuffle_pool([]) == []
    assert shuffle_pool(['B-1']) == ['B-1']
