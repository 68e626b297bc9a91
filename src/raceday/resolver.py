"""
Bracket dependency resolution.

Slots only describe where their two players come from. When a group is fully
played or a bracket match is completed, every slot drawing from it is
re-evaluated; once both sides point at a known player the slot gets its
concrete match. Resolution moves one hop per completed match: creating a
match never completes it.
"""
import logging
from typing import List, Optional, Sequence

from .errors import MatchResultError
from .models import GroupRankSource, Match, new_id
from .round_robin import track_for_round
from .standings import calculate_group_standings, get_user_at, is_group_complete

logger = logging.getLogger(__name__)


class DependencyResolver:
    def __init__(self, store, bracket_tracks: Optional[Sequence[str]] = None):
        self.store = store
        self.bracket_tracks = list(bracket_tracks or [])

    def resolve_source(self, tournament_id, source) -> Optional[str]:
        """The player a slot side currently points to, or None while it is pending."""
        if isinstance(source, GroupRankSource):
            tournament = self.store.get_tournament(tournament_id, include_deleted=True)
            if source.rank > tournament.advancement_count:
                return None
            players = self.store.get_group_players(source.group)
            matches = self.store.get_matches_for_group(source.group)
            if not is_group_complete(players, matches):
                return None
            return get_user_at(calculate_group_standings(players, matches), source.rank)

        upstream = self.store.get_slot(tournament_id, source.slot)
        if upstream.match is None:
            return None
        match = self.store.get_match(upstream.match)
        if match.status != 'completed' or match.winner is None:
            return None
        return match.winner if source.progression == 'winner' else match.loser

    def on_match_completed(self, match) -> List[Match]:
        """
        React to a completed match.

        Group-stage matches resolve the group's bracket slots once the whole
        group is played; bracket matches resolve the slots fed by their
        winner and loser. Returns the bracket matches created or updated.
        """
        if match.status != 'completed':
            return []
        if match.winner is None:
            raise MatchResultError(f"Match {match.id} is completed but has no winner")
        if match.winner not in match.participants:
            raise MatchResultError(f"Winner {match.winner} did not play match {match.id}")

        link = self.store.get_group_for_match(match.id)
        if link is not None:
            players = self.store.get_group_players(link.group)
            if not is_group_complete(players, self.store.get_matches_for_group(link.group)):
                logger.debug("Group %s not complete yet after match %s", link.group, match.id)
                return []
            return self.on_group_completed(link.group)

        slot = self.store.get_slot_by_match(match.id)
        if slot is None:
            return []
        resolved = []
        for dependent in self.store.get_dependent_slots(slot.tournament, slot.id):
            result = self.try_instantiate(slot.tournament, dependent.id)
            if result is not None:
                resolved.append(result)
        return resolved

    def on_group_completed(self, group_id) -> List[Match]:
        resolved = []
        for slot in self.store.get_group_dependent_slots(group_id):
            result = self.try_instantiate(slot.tournament, slot.id)
            if result is not None:
                resolved.append(result)
        return resolved

    def try_instantiate(self, tournament_id, slot_id) -> Optional[Match]:
        """
        Give a slot its match once both sides are known.

        The "does this slot have a match" check and the attach run under the
        slot's lock, so concurrent resolutions create at most one match.
        An existing match only has its participants brought up to date.
        """
        with self.store.slot_lock(tournament_id, slot_id):
            slot = self.store.get_slot(tournament_id, slot_id)
            user_a, user_b = (self.resolve_source(tournament_id, source) for source in slot.sources)
            if user_a is None or user_b is None:
                logger.debug("Slot %s of %s still pending (%s, %s)", slot_id, tournament_id, user_a, user_b)
                return None

            if slot.match is None:
                tournament = self.store.get_tournament(tournament_id, include_deleted=True)
                match = Match(
                    id=new_id(),
                    session=tournament.session,
                    user_a=user_a,
                    user_b=user_b,
                    track=self._track_for(tournament, slot),
                    tournament=tournament_id,
                )
                self.store.create_match(match)
                self.store.attach_match(tournament_id, slot_id, match.id)
                logger.info("Created match %s for %s slot %s: %s vs %s",
                            match.id, slot.bracket, slot_id, user_a, user_b)
                return match

            match = self.store.get_match(slot.match)
            if match.status == 'completed':
                return match
            if match.user_a != user_a:
                match = self.store.set_player(match.id, 'A', user_a)
            if match.user_b != user_b:
                match = self.store.set_player(match.id, 'B', user_b)
            return match

    def _track_for(self, tournament, slot) -> Optional[str]:
        """Bracket tracks cycle per stage, in display order."""
        tracks = tournament.bracket_tracks or self.bracket_tracks
        if not tracks:
            return None
        stages = []
        for other in self.store.get_slots(slot.tournament):
            key = (other.bracket, other.round)
            if key not in stages:
                stages.append(key)
        return track_for_round(stages.index((slot.bracket, slot.round)) + 1, tracks)
