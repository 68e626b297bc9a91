"""
Group standings and per-player match count bounds.

Wins and losses are always computed from completed matches, never stored.
"""
import math
from itertools import groupby
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .elimination import calculate_bracket_size


def group_matches_for(group_players: Sequence, matches: Iterable) -> List:
    """Completed matches played between two members of the same group."""
    members = {gp.user for gp in group_players}
    return [
        m for m in matches
        if m.status == 'completed' and m.winner is not None
        and m.user_a in members and m.user_b in members
    ]


def is_group_complete(group_players: Sequence, matches: Iterable) -> bool:
    """A group is complete once every pairing has a completed match."""
    n = len(group_players)
    if n < 2:
        return True
    played = {frozenset((m.user_a, m.user_b)) for m in group_matches_for(group_players, matches)}
    return len(played) >= n * (n - 1) // 2


def calculate_group_standings(group_players: Sequence, matches: Iterable) -> List[Dict]:
    """
    Rank a group's members by completed-match results.

    Returns [{'user', 'seed', 'wins', 'losses', 'matches_played', 'rank'}, ...]

    Ranking: wins -> head-to-head wins among the tied players -> seed
    """
    played = group_matches_for(group_players, matches)
    stats = {
        gp.user: {'user': gp.user, 'seed': gp.seed, 'wins': 0, 'losses': 0, 'matches_played': 0}
        for gp in group_players
    }

    for match in played:
        stats[match.winner]['wins'] += 1
        stats[match.loser]['losses'] += 1
        stats[match.user_a]['matches_played'] += 1
        stats[match.user_b]['matches_played'] += 1

    by_wins = sorted(stats.values(), key=lambda s: (-s['wins'], s['seed']))
    ordered = []
    for _, block in groupby(by_wins, key=lambda s: s['wins']):
        block = list(block)
        if len(block) > 1:
            tied = {s['user'] for s in block}
            head_to_head = {user: 0 for user in tied}
            for match in played:
                if match.user_a in tied and match.user_b in tied:
                    head_to_head[match.winner] += 1
            block.sort(key=lambda s: (-head_to_head[s['user']], s['seed']))
        ordered.extend(block)

    for rank, entry in enumerate(ordered, start=1):
        entry['rank'] = rank
    return ordered


def get_user_at(standings: Sequence[Dict], rank: int) -> Optional[str]:
    """User finishing at a 1-based rank, or None when the group is too small."""
    if rank < 1 or rank > len(standings):
        return None
    return standings[rank - 1]['user']


def calculate_min_max_matches_per_player(group_sizes: Sequence[int], advancement_count: int,
                                         elimination_type: str) -> Tuple[int, int]:
    """
    Fewest and most matches a single player can play.

    Minimum is the group stage alone for a player in the smallest group who
    does not advance. This is smaller than largest group - 1 whenever group
    sizes differ, which is the bound older versions reported for both ends.
    Maximum adds the deepest bracket run: log2(bracket_size) for single
    elimination, two more for double elimination.
    """
    if not group_sizes or max(group_sizes) < 2:
        return 0, 0

    min_matches = max(min(group_sizes) - 1, 0)
    group_stage_matches = max(group_sizes) - 1

    total_advancing = advancement_count * len(group_sizes)
    bracket_size = calculate_bracket_size(max(1, total_advancing))
    rounds = int(math.log2(bracket_size))

    knockout_matches = rounds if elimination_type == 'single' else rounds + 2
    return min_matches, group_stage_matches + knockout_matches
