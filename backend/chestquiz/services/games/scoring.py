import random
from typing import List, Optional, Sequence

from .constants import BOX_FAILURE, BOX_HALF_VICTORY, BOX_VICTORY, REWARD_FULL, REWARD_HALF
from .state import Team


def reward_tier(question_passed: bool) -> str:
    """A question answered after a pass is only worth the half tier."""
    return REWARD_HALF if question_passed else REWARD_FULL


def box_mode_for(correct: bool, question_passed: bool) -> str:
    if not correct:
        return BOX_FAILURE
    return BOX_HALF_VICTORY if reward_tier(question_passed) == REWARD_HALF else BOX_VICTORY


def deal_chests(table: Sequence[int], chest_count: int, rng: Optional[random.Random] = None) -> List[int]:
    """Shuffle a box table and lay it out over ``chest_count`` chests.

    Chest ``i`` gets the ``i``-th shuffled value, wrapping when the table is
    shorter than the row of chests.
    """
    if not table:
        raise ValueError('box table is empty')
    if chest_count < 1:
        raise ValueError('at least one chest is required')
    values = list(table)
    (rng or random).shuffle(values)
    return [values[i % len(values)] for i in range(chest_count)]


def round_bet(amount: int, score: int, increment: int) -> int:
    """Snap a bet to the betting increment, never above the team's score.

    The score cap wins over the increment: a team on 8 points betting
    everything stakes 8, not 5 or 10.
    """
    if increment > 1:
        amount = int((amount + increment / 2.0) // increment) * increment
    return max(0, min(amount, score))


def final_delta(bet: int, correct: bool) -> int:
    return bet if correct else -bet


def winners(teams: Sequence[Team]) -> List[int]:
    """Indexes of every team sharing the top score."""
    if not teams:
        return []
    top = max(t.score for t in teams)
    return [t.index for t in teams if t.score == top]
