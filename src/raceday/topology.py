"""
Bracket topology: an arena of slots wired by id and the builder that fills it.

Slots reference their sources by id only. A slot is always added after the
slots it draws from, so source ids are strictly smaller than the slot's own
id and the graph is a DAG by construction.
"""
import logging
from typing import Dict, List, Optional, Sequence

from .double_elimination import build_grand_final, build_lower_bracket
from .elimination import build_upper_bracket, calculate_bracket_size
from .errors import SeedingError
from .labels import GRAND_FINAL, lower_round_name, upper_round_name
from .models import ELIMINATION_TYPES, Slot, SlotSource

logger = logging.getLogger(__name__)


class SlotArena:
    def __init__(self, tournament_id):
        self.tournament_id = tournament_id
        self.slots: Dict[int, Slot] = {}
        self._next_id = 1

    def add(self, bracket, round, sources) -> Slot:
        for source in sources:
            if isinstance(source, SlotSource) and source.slot >= self._next_id:
                raise ValueError(f"Slot source {source.slot} does not precede slot {self._next_id}")
        index = len(self.in_round(bracket, round))
        slot = Slot(id=self._next_id, tournament=self.tournament_id, bracket=bracket,
                    round=round, position=0, sources=sources, index=index)
        self.slots[slot.id] = slot
        self._next_id += 1
        return slot

    def in_round(self, bracket, round) -> List[Slot]:
        return [s for s in self.slots.values() if s.bracket == bracket and s.round == round]

    def __getitem__(self, slot_id):
        return self.slots[slot_id]

    def __iter__(self):
        return iter(self.slots.values())

    def __len__(self):
        return len(self.slots)


class BracketStage:
    def __init__(self, bracket, round, name, slots):
        self.bracket = bracket
        self.round = round
        self.name = name
        self.slots = slots

    def __repr__(self):
        return f"BracketStage(bracket={self.bracket}, round={self.round}, name={self.name}, slots={len(self.slots)})"


class BracketTopology:
    def __init__(self, arena, stages, bracket_size, total_advancing, elimination_type,
                 lower_round_count=0):
        self.arena = arena
        self.stages = stages
        self.bracket_size = bracket_size
        self.total_advancing = total_advancing
        self.elimination_type = elimination_type
        self.lower_round_count = lower_round_count

    @property
    def slots(self) -> List[Slot]:
        return sorted(self.arena, key=lambda s: s.position)

    def stages_for(self, bracket) -> List[BracketStage]:
        return [stage for stage in self.stages if stage.bracket == bracket]

    @property
    def grand_final(self) -> Optional[Slot]:
        finals = [s for s in self.arena if s.bracket == 'grand_final']
        return finals[0] if finals else None


class BracketTopologyBuilder:
    """
    Build the knockout stage for a tournament.

    The first round is seeded from group finishes (see seed_source), byes
    collapse so the present side advances straight to the next round, and
    for double elimination the losers of every upper round feed the lower
    bracket, whose champion meets the upper champion in the grand final.
    """

    def __init__(self, tournament_id, groups: Sequence, advancement_count: int, elimination_type: str):
        if elimination_type not in ELIMINATION_TYPES:
            raise ValueError(f"Unknown elimination type: {elimination_type}")
        if advancement_count < 1:
            raise ValueError(f"Advancement count must be at least 1, got {advancement_count}")
        self.tournament_id = tournament_id
        self.groups = sorted(groups, key=lambda g: g.index)
        self.advancement_count = advancement_count
        self.elimination_type = elimination_type

    @property
    def total_advancing(self) -> int:
        return len(self.groups) * self.advancement_count

    def build(self) -> BracketTopology:
        total_advancing = self.total_advancing
        if total_advancing < 2:
            raise SeedingError(f"A bracket needs at least 2 entrants, got {total_advancing}")

        bracket_size = calculate_bracket_size(total_advancing)
        arena = SlotArena(self.tournament_id)

        upper_champion, upper_rounds = build_upper_bracket(
            arena, self.groups, self.advancement_count, bracket_size
        )

        stages = []
        lower_stages = []
        lower_rounds = []
        if self.elimination_type == 'double':
            lower_champion, lower_rounds = build_lower_bracket(arena, upper_rounds)
            build_grand_final(arena, upper_champion, lower_champion)

        for round_size, _ in upper_rounds:
            slots = arena.in_round('upper', round_size)
            if slots:
                stages.append(BracketStage('upper', round_size, upper_round_name(round_size), slots))
            for lower_round, follows, _ in lower_rounds:
                if follows != round_size:
                    continue
                slots = arena.in_round('lower', lower_round)
                if slots:
                    stage = BracketStage('lower', lower_round, None, slots)
                    stages.append(stage)
                    lower_stages.append(stage)

        for number, stage in enumerate(lower_stages, start=1):
            stage.name = lower_round_name(number, len(lower_stages))

        if self.elimination_type == 'double':
            stages.append(BracketStage('grand_final', 1, GRAND_FINAL, arena.in_round('grand_final', 1)))

        position = 1
        for stage in stages:
            for slot in stage.slots:
                slot.position = position
                position += 1

        logger.debug(
            "Built %s elimination bracket for %s: size %d, %d entrants, %d slots",
            self.elimination_type, self.tournament_id, bracket_size, total_advancing, len(arena)
        )
        return BracketTopology(
            arena=arena,
            stages=stages,
            bracket_size=bracket_size,
            total_advancing=total_advancing,
            elimination_type=self.elimination_type,
            lower_round_count=len(lower_stages),
        )


def stages_from_slots(slots: Sequence[Slot]) -> List[BracketStage]:
    """Rebuild the named, display-ordered stages from stored slots."""
    stages = []
    by_key = {}
    for slot in sorted(slots, key=lambda s: s.position):
        key = (slot.bracket, slot.round)
        if key not in by_key:
            by_key[key] = BracketStage(slot.bracket, slot.round, None, [])
            stages.append(by_key[key])
        by_key[key].slots.append(slot)

    lower_stages = [stage for stage in stages if stage.bracket == 'lower']
    for stage in stages:
        if stage.bracket == 'upper':
            stage.name = upper_round_name(stage.round)
        elif stage.bracket == 'grand_final':
            stage.name = GRAND_FINAL
    for number, stage in enumerate(lower_stages, start=1):
        stage.name = lower_round_name(number, len(lower_stages))
    return stages
