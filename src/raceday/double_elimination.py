"""
Double elimination: lower bracket and grand final.

In double elimination:
- Players must lose twice to be eliminated
- Upper bracket: players that haven't lost yet
- Lower bracket: players that have lost once
- Grand Final: upper bracket champion vs lower bracket champion
"""
import math
from typing import List, Tuple

from .elimination import pair_sources


def calculate_lower_bracket_rounds(bracket_size: int) -> int:
    """
    Calculate number of rounds in the lower bracket.
    For N players in the upper bracket (power of 2):
    - Upper bracket has log2(N) rounds
    - Lower bracket has 2 * (log2(N) - 1) rounds

    Pattern: first round, then drop-in/survivor pairs, ending with a drop-in round
    """
    if bracket_size < 2:
        return 0
    upper_rounds = int(math.log2(bracket_size))
    return 2 * (upper_rounds - 1)


def calculate_lower_path_rounds(bracket_size: int) -> int:
    """
    Rounds a player entering the lower side plays through to the title:
    the lower bracket rounds plus the grand final, 2 * log2(N) - 1.
    """
    if bracket_size < 2:
        return 0
    return calculate_lower_bracket_rounds(bracket_size) + 1


def build_lower_bracket(arena, upper_rounds: List[Tuple[int, list]]) -> Tuple[object, List[Tuple[int, int, str]]]:
    """
    Build the lower bracket from the upper bracket's loser sources.

    Round 1 pairs losers of consecutive upper first-round matches. After
    that, for every later upper round:
    - drop-in round: lower survivors play the losers dropping from that
      upper round
    - survivor round: drop-in winners play each other, halving the field
      (skipped once a single lower finalist remains)

    Returns (lower_champion_source, rounds) where rounds lists
    (lower_round, upper_round_it_follows, kind) in play order.
    """
    rounds = []
    lower_round = 1

    first_round, first_losers = upper_rounds[0]
    survivors = []
    for i in range(0, len(first_losers), 2):
        other = first_losers[i + 1] if i + 1 < len(first_losers) else None
        winner, _ = pair_sources(arena, 'lower', lower_round, first_losers[i], other)
        survivors.append(winner)
    rounds.append((lower_round, first_round, 'first'))

    for upper_round, dropped in upper_rounds[1:]:
        lower_round += 1
        survivors = [
            pair_sources(arena, 'lower', lower_round, survivor, loser)[0]
            for survivor, loser in zip(survivors, dropped)
        ]
        rounds.append((lower_round, upper_round, 'drop_in'))

        if len(survivors) > 1:
            lower_round += 1
            survivors = [
                pair_sources(arena, 'lower', lower_round, survivors[i], survivors[i + 1])[0]
                for i in range(0, len(survivors), 2)
            ]
            rounds.append((lower_round, upper_round, 'survivor'))

    return survivors[0], rounds


def build_grand_final(arena, upper_champion, lower_champion):
    """Upper bracket champion vs lower bracket champion."""
    return arena.add('grand_final', 1, (upper_champion, lower_champion))
