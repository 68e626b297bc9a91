import uuid
from datetime import datetime


ELIMINATION_TYPES = ('single', 'double')
BRACKETS = ('group', 'upper', 'lower', 'grand_final')
PROGRESSIONS = ('winner', 'loser')
MATCH_STATUSES = ('planned', 'completed', 'cancelled')
SIDES = ('A', 'B')


def new_id() -> str:
    return str(uuid.uuid4())


class Tournament:
    def __init__(self, id, session, name, groups_count, advancement_count, elimination_type,
                 description=None, created_at=None, deleted_at=None,
                 group_stage_tracks=None, bracket_tracks=None):
        if elimination_type not in ELIMINATION_TYPES:
            raise ValueError(f"Unknown elimination type: {elimination_type}")
        self.id = id
        self.session = session
        self.name = name
        self.description = description
        self.groups_count = groups_count
        self.advancement_count = advancement_count
        self.elimination_type = elimination_type
        self.created_at = created_at or datetime.now()
        self.deleted_at = deleted_at
        self.group_stage_tracks = list(group_stage_tracks or [])
        self.bracket_tracks = list(bracket_tracks or [])

    def __repr__(self):
        return (f"Tournament(id={self.id}, name={self.name}, groups_count={self.groups_count}, "
                f"advancement_count={self.advancement_count}, elimination_type={self.elimination_type})")


def group_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ''
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord('A') + remainder) + letters
    return letters


class Group:
    def __init__(self, id, tournament, index):
        self.id = id
        self.tournament = tournament
        self.index = index

    @property
    def letter(self):
        return group_letter(self.index)

    def __repr__(self):
        return f"Group(id={self.id}, index={self.index}, letter={self.letter})"


class GroupPlayer:
    def __init__(self, id, group, user, seed):
        self.id = id
        self.group = group
        self.user = user
        self.seed = seed

    def __repr__(self):
        return f"GroupPlayer(group={self.group}, user={self.user}, seed={self.seed})"


class GroupRankSource:
    """A slot side fed by the player finishing at `rank` (1-based) in `group`."""

    kind = 'group'

    def __init__(self, group, rank):
        self.group = group
        self.rank = rank

    def __eq__(self, other):
        return isinstance(other, GroupRankSource) and (self.group, self.rank) == (other.group, other.rank)

    def __hash__(self):
        return hash((self.kind, self.group, self.rank))

    def __repr__(self):
        return f"GroupRankSource(group={self.group}, rank={self.rank})"


class SlotSource:
    """A slot side fed by the winner or loser of another slot's match."""

    kind = 'slot'

    def __init__(self, slot, progression):
        if progression not in PROGRESSIONS:
            raise ValueError(f"Unknown progression: {progression}")
        self.slot = slot
        self.progression = progression

    def __eq__(self, other):
        return isinstance(other, SlotSource) and (self.slot, self.progression) == (other.slot, other.progression)

    def __hash__(self):
        return hash((self.kind, self.slot, self.progression))

    def __repr__(self):
        return f"SlotSource(slot={self.slot}, progression={self.progression})"


class Slot:
    def __init__(self, id, tournament, bracket, round, position, sources, index=0, match=None):
        if bracket not in BRACKETS:
            raise ValueError(f"Unknown bracket: {bracket}")
        if len(sources) != 2 or any(s is None for s in sources):
            raise ValueError(f"Slot {id} needs exactly two sources, got {sources}")
        self.id = id
        self.tournament = tournament
        self.bracket = bracket
        self.round = round
        self.position = position
        self.index = index  # order within its round
        self.sources = tuple(sources)
        self.match = match

    @property
    def is_entry(self):
        return any(isinstance(s, GroupRankSource) for s in self.sources)

    def __repr__(self):
        return (f"Slot(id={self.id}, bracket={self.bracket}, round={self.round}, "
                f"index={self.index}, sources={self.sources}, match={self.match})")


class Match:
    def __init__(self, id, session, user_a=None, user_b=None, status='planned', winner=None,
                 track=None, tournament=None):
        if status not in MATCH_STATUSES:
            raise ValueError(f"Unknown match status: {status}")
        self.id = id
        self.session = session
        self.user_a = user_a
        self.user_b = user_b
        self.status = status
        self.winner = winner
        self.track = track
        self.tournament = tournament

    @property
    def participants(self):
        return (self.user_a, self.user_b)

    @property
    def loser(self):
        if self.winner is None:
            return None
        return self.user_b if self.winner == self.user_a else self.user_a

    def __repr__(self):
        return (f"Match(id={self.id}, user_a={self.user_a}, user_b={self.user_b}, "
                f"status={self.status}, winner={self.winner}, track={self.track})")


class TournamentStructure:
    """Everything generated for one tournament, before or after it is stored."""

    def __init__(self, tournament, groups, group_players, matches, group_matches, slots, topology=None,
                 group_stage_rounds=0):
        self.tournament = tournament
        self.groups = groups
        self.group_players = group_players
        self.matches = matches
        self.group_matches = group_matches
        self.slots = slots
        self.topology = topology
        self.group_stage_rounds = group_stage_rounds

    def __repr__(self):
        return (f"TournamentStructure(tournament={self.tournament.id}, groups={len(self.groups)}, "
                f"matches={len(self.matches)}, slots={len(self.slots)})")


class GroupMatch:
    def __init__(self, group, round, index, match):
        self.group = group
        self.round = round
        self.index = index
        self.match = match

    def __repr__(self):
        return f"GroupMatch(group={self.group}, round={self.round}, index={self.index}, match={self.match})"
