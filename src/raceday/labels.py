"""
Human-readable names for stages, bracket matches and pending slot sides.
"""
from .elimination import get_stage_level
from .models import group_letter

GRAND_FINAL = 'Grand Final'

UPPER_STAGE_NAMES = {
    'final': 'Final',
    'semi': 'Semifinal',
    'quarter': 'Quarterfinal',
    'eighth': 'Round of 16',
    'sixteenth': 'Round of 32',
    'thirty_second': 'Round of 64',
}


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f"{n}{suffix}"


def group_round_name(index: int) -> str:
    """Group stage rounds are numbered, index is 0-based."""
    return f"Round {index + 1}"


def upper_round_name(round_size: int) -> str:
    """Name an upper round by the number of players in it (8 -> Quarterfinal)."""
    return UPPER_STAGE_NAMES[get_stage_level(round_size // 2)]


def lower_round_name(number: int, total: int) -> str:
    """Lower rounds are numbered from 1; the last one is the Lower Final."""
    if number == total:
        return 'Lower Final'
    return f"Lower Round {number}"


def bracket_match_name(stage_name: str, index: int, matches_in_stage: int) -> str:
    """Semifinal 1, Semifinal 2 ... or just the stage name for single-match stages."""
    if matches_in_stage == 1:
        return stage_name
    return f"{stage_name} {index + 1}"


def group_source_label(group_index: int, rank: int) -> str:
    return f"{ordinal(rank)} place, Group {group_letter(group_index)}"


def slot_source_label(match_name: str, progression: str) -> str:
    return f"{progression.capitalize()} of {match_name}"
