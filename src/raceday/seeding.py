"""
Group seeding: order signed-up players by strength and snake them into groups.
"""
from typing import Dict, List, Optional, Tuple

from .models import Group, GroupPlayer, new_id


def assign_seeds(player_ids: List[str], ratings: Optional[Dict[str, float]] = None) -> List[Tuple[str, int]]:
    """
    Order players strongest first and number them.

    Returns list of (player_id, seed) tuples, seed 1 being the strongest.
    Players without a rating are the weakest possible seed. Equal ratings
    keep their signup order.
    """
    ratings = ratings or {}
    unique_ids = list(dict.fromkeys(player_ids))
    ordered = sorted(
        enumerate(unique_ids),
        key=lambda item: (ratings.get(item[1]) is None, -(ratings.get(item[1]) or 0), item[0])
    )
    return [(player_id, seed) for seed, (_, player_id) in enumerate(ordered, start=1)]


def snake_seed(seeded_players: List[Tuple[str, int]], groups_count: int) -> List[List[Tuple[str, int]]]:
    """
    Distribute seeded players into groups in a snake pattern.

    Row 0: A B C D (left to right)
    Row 1: D C B A (right to left)
    Row 2: A B C D
    ...

    Returns one list of (player_id, seed) per group, or [] when fewer than
    two players are supplied.
    """
    if len(seeded_players) < 2 or groups_count < 1:
        return []

    groups = [[] for _ in range(groups_count)]
    for i, player in enumerate(sorted(seeded_players, key=lambda p: p[1])):
        row, position_in_row = divmod(i, groups_count)
        group_index = groups_count - 1 - position_in_row if row % 2 == 1 else position_in_row
        groups[group_index].append(player)
    return groups


def generate_groups(tournament_id: str, groups_count: int,
                    seeded_players: List[Tuple[str, int]]) -> Tuple[List[Group], List[GroupPlayer]]:
    """Create Group and GroupPlayer records for a snake-seeded player pool."""
    assignment = snake_seed(seeded_players, groups_count)
    if not assignment:
        return [], []

    groups = [Group(id=new_id(), tournament=tournament_id, index=i) for i in range(groups_count)]
    group_players = []
    for group, members in zip(groups, assignment):
        for player_id, seed in members:
            group_players.append(GroupPlayer(id=new_id(), group=group.id, user=player_id, seed=seed))
    return groups, group_players
