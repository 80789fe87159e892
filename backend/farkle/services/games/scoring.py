from collections import Counter
from typing import Iterable, List

STRAIGHT_SCORE = 1500
TRIPLE_SCORES = {1: 1000, 2: 200, 3: 300, 4: 400, 5: 500, 6: 600}
SINGLE_SCORES = {1: 100, 5: 50}
FACES = range(1, 7)


def _faces(faces: Iterable[int]) -> List[int]:
    values = list(faces)
    for value in values:
        if value not in TRIPLE_SCORES:
            raise ValueError(f"Die face out of range: {value!r}")
    return values


def _is_straight(values: List[int]) -> bool:
    return len(values) == 6 and sorted(values) == list(FACES)


def score(faces: Iterable[int]) -> int:
    """Score a set of die faces taken together.

    A 1-6 straight is worth a flat 1500. Otherwise each face is counted on
    its own: three or more of a kind score the triple value times
    (count - 2), and leftover 1s and 5s score 100 and 50 apiece.
    """
    values = _faces(faces)
    if _is_straight(values):
        return STRAIGHT_SCORE

    total = 0
    for face, count in Counter(values).items():
        if count >= 3:
            total += TRIPLE_SCORES[face] * (count - 2)
        else:
            total += SINGLE_SCORES.get(face, 0) * count
    return total


def is_legal_selection(faces: Iterable[int]) -> bool:
    """True when every selected die contributes to the score.

    Holding back a non-scoring die (a lone 2, a pair of 4s...) is refused,
    so players cannot park dead dice to pick how many they re-roll.
    """
    values = _faces(faces)
    if not values:
        return False
    if _is_straight(values):
        return True
    return all(
        count >= 3 or face in SINGLE_SCORES
        for face, count in Counter(values).items()
    )


def has_any_scoring_move(faces: Iterable[int]) -> bool:
    """False means the roll is a Farkle."""
    values = _faces(faces)
    if _is_straight(values):
        return True
    counts = Counter(values)
    if any(face in counts for face in SINGLE_SCORES):
        return True
    return any(count >= 3 for count in counts.values())
