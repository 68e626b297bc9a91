"""
Round-robin group stage scheduling (circle method).
"""
import math
from typing import List, Optional, Sequence, Tuple

from .models import GroupMatch, Match, new_id

BYE = object()


def generate_round_robin_rounds(players: Sequence[str]) -> List[List[Tuple[str, str]]]:
    """
    Generate round-robin rounds using the circle method.

    One player stays fixed while the others rotate around the circle; each
    round pairs opposite positions. Odd groups get a synthetic bye and any
    pairing against it is dropped, so an odd group of n players plays n
    rounds of (n - 1) / 2 matches and an even group plays n - 1 rounds of
    n / 2 matches. Every pair meets exactly once.
    """
    if len(players) < 2:
        return []

    participants = list(players)
    if len(participants) % 2 == 1:
        participants.append(BYE)

    n = len(participants)
    fixed = participants[0]
    circle = participants[1:]
    rounds = []

    for _ in range(n - 1):
        lineup = [fixed] + circle
        round_matches = []
        for i in range(n // 2):
            home, away = lineup[i], lineup[n - 1 - i]
            if home is BYE or away is BYE:
                continue
            round_matches.append((home, away))
        rounds.append(round_matches)
        circle = circle[-1:] + circle[:-1]

    return rounds


def interleave_group_rounds(group_rounds: List[List[List[Tuple[str, str]]]]) -> List[Tuple[int, int, str, str]]:
    """
    Merge the rounds of several groups into one play order.

    Each round gets a normalized progress round_index / (rounds_in_group - 1)
    so groups with fewer rounds are spread over the same timeline as the
    largest group. Ties are broken by group index.

    Returns list of (group_index, round_number, player_a, player_b), with
    round_number 1-based within its group.
    """
    positioned = []
    for group_index, rounds in enumerate(group_rounds):
        total = len(rounds)
        for round_index, round_matches in enumerate(rounds):
            progress = round_index / (total - 1) if total > 1 else 0
            for match_index, (a, b) in enumerate(round_matches):
                positioned.append(((progress, group_index, match_index), (group_index, round_index + 1, a, b)))

    positioned.sort(key=lambda item: item[0])
    return [entry for _, entry in positioned]


def track_for_round(round_number: int, tracks: Optional[Sequence[str]]) -> Optional[str]:
    """Cycle through the track list by 1-based round number."""
    if not tracks:
        return None
    return tracks[(round_number - 1) % len(tracks)]


def recommended_track_count(rounds: int) -> int:
    return math.ceil(rounds / 2)


def create_group_matches(tournament_id: str, session: str, groups, group_players,
                         tracks: Optional[Sequence[str]] = None) -> Tuple[List[Match], List[GroupMatch], int]:
    """
    Build the concrete group-stage matches for all groups.

    Returns (matches, group_match_links, round_count). Matches are in
    interleaved play order; round_count is the number of group-stage rounds
    (the largest group's round count).
    """
    ordered_groups = sorted(groups, key=lambda g: g.index)
    group_rounds = []
    for group in ordered_groups:
        members = [gp.user for gp in sorted(group_players, key=lambda gp: gp.seed) if gp.group == group.id]
        group_rounds.append(generate_round_robin_rounds(members))

    matches = []
    links = []
    for index, (group_index, round_number, a, b) in enumerate(interleave_group_rounds(group_rounds)):
        match = Match(
            id=new_id(),
            session=session,
            user_a=a,
            user_b=b,
            track=track_for_round(round_number, tracks),
            tournament=tournament_id,
        )
        matches.append(match)
        links.append(GroupMatch(group=ordered_groups[group_index].id, round=round_number, index=index, match=match.id))

    round_count = max((len(r) for r in group_rounds), default=0)
    return matches, links, round_count
