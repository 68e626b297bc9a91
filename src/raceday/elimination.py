"""
Single elimination bracket topology: sizing, seeding order and the upper bracket.
"""
import math
from typing import List, Optional, Sequence, Tuple

from .models import GroupRankSource, SlotSource

STAGE_LEVELS = {
    1: 'final',
    2: 'semi',
    4: 'quarter',
    8: 'eighth',
    16: 'sixteenth',
    32: 'thirty_second',
}


def get_stage_level(matches_in_round: int) -> str:
    """Map the number of matches in an upper round to its stage level."""
    try:
        return STAGE_LEVELS[matches_in_round]
    except KeyError:
        raise ValueError(f"Invalid matches in round: {matches_in_round}") from None


def calculate_bracket_size(num_players: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_players <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_players))


def calculate_byes(num_players: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_players) - num_players


def generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 players: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    Winners: 1v4 side, 2v3 side
    Final: 1v2 (if chalk)
    """
    if bracket_size < 2:
        return [1] if bracket_size == 1 else []

    order = [1, 2]
    size = 2
    while size < bracket_size:
        size *= 2
        order = [s for seed in order for s in (seed, size + 1 - seed)]
    return order


def seed_source(index: int, groups_count: int, advancement_count: int,
                total_advancing: int) -> Optional[Tuple[int, int]]:
    """
    Map a 0-based global seed index to the group finish it stands for.

    Seeds run across groups first: index 0 is group 0's winner, index 1 is
    group 1's winner, and so on, then the runners-up. Indices at or beyond
    total_advancing are byes.
    """
    if index >= total_advancing or index >= groups_count * advancement_count:
        return None
    return index % groups_count, index // groups_count + 1


def pair_sources(arena, bracket: str, round: int, a, b) -> Tuple[object, Optional[SlotSource]]:
    """
    Pair two sources into a slot, collapsing byes.

    Returns (winner_source, loser_source). When one side is missing no slot
    is created: the present side advances as-is and there is no loser.
    """
    if a is None and b is None:
        return None, None
    if a is None:
        return b, None
    if b is None:
        return a, None
    slot = arena.add(bracket, round, (a, b))
    return SlotSource(slot.id, 'winner'), SlotSource(slot.id, 'loser')


def build_upper_bracket(arena, groups: Sequence, advancement_count: int,
                        bracket_size: int) -> Tuple[object, List[Tuple[int, list]]]:
    """
    Build the upper bracket from the first round (round = bracket_size) down
    to the final (round = 2).

    Returns (champion_source, rounds) where rounds is a list of
    (round, loser_sources) from first round to final. Loser sources are None
    where a bye collapsed the pairing.
    """
    groups = sorted(groups, key=lambda g: g.index)
    total_advancing = len(groups) * advancement_count

    current = []
    for seed in generate_bracket_order(bracket_size):
        mapped = seed_source(seed - 1, len(groups), advancement_count, total_advancing)
        if mapped is None:
            current.append(None)
        else:
            group_index, rank = mapped
            current.append(GroupRankSource(groups[group_index].id, rank))

    rounds = []
    round_size = bracket_size
    while round_size >= 2:
        get_stage_level(round_size // 2)
        winners, losers = [], []
        for i in range(0, len(current), 2):
            winner, loser = pair_sources(arena, 'upper', round_size, current[i], current[i + 1])
            winners.append(winner)
            losers.append(loser)
        rounds.append((round_size, losers))
        current = winners
        round_size //= 2

    return current[0], rounds
