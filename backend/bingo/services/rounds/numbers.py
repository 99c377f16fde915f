import random
from typing import List, Optional, Sequence

LETTERS = ('B', 'I', 'N', 'G', 'O')
GROUP_SIZE = 15
POOL_SIZE = len(LETTERS) * GROUP_SIZE


def generate_pool() -> List[str]:
    """Return the 75 ball labels in order: B-1..B-15, I-16..I-30, ... O-61..O-75."""
    pool = []
    for idx, letter in enumerate(LETTERS):
        start = idx * GROUP_SIZE + 1
        for n in range(start, start + GROUP_SIZE):
            pool.append(f"{letter}-{n}")
    return pool


def shuffle_pool(pool: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Fisher-Yates shuffle into a new list; the input is left untouched."""
    rng = rng or random
    shuffled = list(pool)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
