"""
Tournament manager: generation, storage and read-side details.

Generation runs signups -> seeds -> groups -> group matches -> bracket in
memory and is stored in one all-or-nothing insert. Details are always
computed from stored matches; wins, losses and ranks are never persisted.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence

from .config import Settings
from .errors import MatchResultError, SeedingError
from .labels import bracket_match_name, group_round_name, group_source_label, slot_source_label
from .models import GroupRankSource, Tournament, TournamentStructure, new_id
from .resolver import DependencyResolver
from .round_robin import create_group_matches, recommended_track_count
from .seeding import assign_seeds, generate_groups
from .standings import calculate_group_standings, calculate_min_max_matches_per_player, is_group_complete
from .topology import BracketTopologyBuilder, stages_from_slots

logger = logging.getLogger(__name__)


class TournamentManager:
    """
    Entry point for callers.

    `signups(session)` returns the ordered player ids signed up for a
    session. `ratings(player_ids)` returns {player_id: rating} and may omit
    players. `names(player_id)` gives a display name, defaulting to the id.
    """

    def __init__(self, store, signups: Callable[[str], Sequence[str]],
                 ratings: Optional[Callable[[Sequence[str]], Dict[str, float]]] = None,
                 names: Optional[Callable[[str], str]] = None,
                 settings: Optional[Settings] = None):
        self.store = store
        self.signups = signups
        self.ratings = ratings
        self.names = names or (lambda player_id: player_id)
        self.settings = settings
        self.resolver = DependencyResolver(store, settings.bracket_tracks if settings else None)
        store.subscribe(self.on_match_updated)

    # Generation

    def generate_tournament_structure(self, request) -> TournamentStructure:
        player_ids = list(dict.fromkeys(self.signups(request.session)))
        if len(player_ids) < 2:
            raise SeedingError(f"Session {request.session} needs at least 2 players, got {len(player_ids)}")
        if request.groups_count > len(player_ids):
            raise SeedingError(
                f"Cannot split {len(player_ids)} players into {request.groups_count} groups"
            )

        ratings = self.ratings(player_ids) if self.ratings else {}
        seeded = assign_seeds(player_ids, ratings)

        group_stage_tracks = request.group_stage_tracks or self._default_tracks('group_stage_tracks')
        bracket_tracks = request.bracket_tracks or self._default_tracks('bracket_tracks')
        tournament = Tournament(
            id=new_id(),
            session=request.session,
            name=getattr(request, 'name', None) or 'Preview',
            description=getattr(request, 'description', None),
            groups_count=request.groups_count,
            advancement_count=request.advancement_count,
            elimination_type=request.elimination_type,
            group_stage_tracks=group_stage_tracks,
            bracket_tracks=bracket_tracks,
        )

        groups, group_players = generate_groups(tournament.id, request.groups_count, seeded)
        smallest = min(sum(1 for gp in group_players if gp.group == g.id) for g in groups)
        if request.advancement_count > smallest:
            logger.warning(
                "Advancement count %d exceeds the smallest group (%d players); some bracket slots will stay pending",
                request.advancement_count, smallest
            )

        matches, links, rounds = create_group_matches(
            tournament.id, tournament.session, groups, group_players, group_stage_tracks
        )
        topology = BracketTopologyBuilder(
            tournament.id, groups, request.advancement_count, request.elimination_type
        ).build()

        return TournamentStructure(
            tournament=tournament,
            groups=groups,
            group_players=group_players,
            matches=matches,
            group_matches=links,
            slots=topology.slots,
            topology=topology,
            group_stage_rounds=rounds,
        )

    def _default_tracks(self, key) -> List[str]:
        if self.settings is None:
            return []
        return list(getattr(self.settings, key))

    def create_tournament(self, request) -> Dict:
        structure = self.generate_tournament_structure(request)
        self.store.insert_structure(structure)
        logger.info("Created tournament %s (%s) for session %s",
                    structure.tournament.id, structure.tournament.name, structure.tournament.session)

        # Single-member groups are decided before anything is played
        for group in structure.groups:
            if len(self.store.get_group_players(group.id)) < 2:
                self.resolver.on_group_completed(group.id)

        return self.get_tournament(structure.tournament.id)

    def preview_tournament(self, request) -> Dict:
        """Generate a structure without storing it."""
        return self._details(self.generate_tournament_structure(request))

    # Reads

    def get_tournament(self, tournament_id) -> Dict:
        return self._details(self._load_structure(tournament_id), stored=True)

    def get_all(self) -> List[Dict]:
        return [self.get_tournament(t.id) for t in self.store.list_tournaments()]

    def _load_structure(self, tournament_id) -> TournamentStructure:
        tournament = self.store.get_tournament(tournament_id)
        groups = self.store.get_groups(tournament_id)
        links = [link for link, _ in self.store.get_group_stage_matches(tournament_id)]
        return TournamentStructure(
            tournament=tournament,
            groups=groups,
            group_players=[gp for group in groups for gp in self.store.get_group_players(group.id)],
            matches=self.store.get_tournament_matches(tournament_id),
            group_matches=links,
            slots=self.store.get_slots(tournament_id),
            group_stage_rounds=max((link.round for link in links), default=0),
        )

    def _match_details(self, match) -> Dict:
        return {
            'id': match.id,
            'user_a': match.user_a,
            'user_b': match.user_b,
            'name_a': self.names(match.user_a) if match.user_a else None,
            'name_b': self.names(match.user_b) if match.user_b else None,
            'status': match.status,
            'winner': match.winner,
            'track': match.track,
        }

    def _details(self, structure: TournamentStructure, stored=False) -> Dict:
        tournament = structure.tournament
        matches = {m.id: m for m in structure.matches}
        groups = sorted(structure.groups, key=lambda g: g.index)
        group_index = {g.id: g.index for g in groups}

        groups_details = []
        group_sizes = []
        for group in groups:
            members = sorted((gp for gp in structure.group_players if gp.group == group.id), key=lambda gp: gp.seed)
            played = [matches[link.match] for link in structure.group_matches if link.group == group.id]
            standings = calculate_group_standings(members, played)
            group_sizes.append(len(members))
            groups_details.append({
                'id': group.id,
                'index': group.index,
                'letter': group.letter,
                'complete': is_group_complete(members, played),
                'players': [dict(entry, name=self.names(entry['user'])) for entry in standings],
            })

        group_stage = []
        for round_number in range(1, structure.group_stage_rounds + 1):
            round_matches = []
            for link in sorted(structure.group_matches, key=lambda l: l.index):
                if link.round == round_number:
                    entry = self._match_details(matches[link.match])
                    entry['group'] = groups_details[group_index[link.group]]['letter']
                    round_matches.append(entry)
            group_stage.append({'name': group_round_name(round_number - 1), 'matches': round_matches})

        stages = stages_from_slots(structure.slots)
        match_names = {
            slot.id: bracket_match_name(stage.name, slot.index, len(stage.slots))
            for stage in stages for slot in stage.slots
        }

        def side(source):
            user = self.resolver.resolve_source(tournament.id, source) if stored else None
            if user is not None:
                return {'user': user, 'name': self.names(user)}
            if isinstance(source, GroupRankSource):
                label = group_source_label(group_index[source.group], source.rank)
            else:
                label = slot_source_label(match_names[source.slot], source.progression)
            return {'user': None, 'name': label}

        stages_details = []
        for stage in stages:
            stage_matches = []
            for slot in stage.slots:
                match = matches.get(slot.match) if slot.match else None
                if match is not None and match.user_a and match.user_b:
                    participants = [{'user': u, 'name': self.names(u)} for u in match.participants]
                else:
                    participants = [side(source) for source in slot.sources]
                stage_matches.append({
                    'slot': slot.id,
                    'position': slot.position,
                    'name': match_names[slot.id],
                    'participants': participants,
                    'match': self._match_details(match) if match else None,
                })
            stages_details.append({
                'bracket': stage.bracket,
                'round': stage.round,
                'name': stage.name,
                'matches': stage_matches,
            })

        champion = None
        if structure.slots:
            last = max(structure.slots, key=lambda s: s.position)
            final = matches.get(last.match) if last.match else None
            if final is not None and final.status == 'completed':
                champion = final.winner

        min_matches, max_matches = calculate_min_max_matches_per_player(
            group_sizes, tournament.advancement_count, tournament.elimination_type
        )
        return {
            'id': tournament.id,
            'session': tournament.session,
            'name': tournament.name,
            'description': tournament.description,
            'groups_count': tournament.groups_count,
            'advancement_count': tournament.advancement_count,
            'elimination_type': tournament.elimination_type,
            'created_at': tournament.created_at,
            'groups': groups_details,
            'group_stage': group_stage,
            'group_stage_rounds': structure.group_stage_rounds,
            'stages': stages_details,
            'min_matches_per_player': min_matches,
            'max_matches_per_player': max_matches,
            'group_stage_track_count': recommended_track_count(structure.group_stage_rounds),
            'bracket_track_count': recommended_track_count(len(stages)),
            'champion': champion,
            'champion_name': self.names(champion) if champion else None,
        }

    # Writes

    def delete_tournament(self, request):
        tournament = self.store.soft_delete_tournament(request.tournament_id)
        logger.info("Deleted tournament %s", tournament.id)
        return tournament

    def report_match_result(self, request):
        """
        Complete a match. Resolution of downstream slots follows through the
        store's completion event.

        A completed result may be corrected only while nothing downstream
        has been decided from it.
        """
        match = self.store.get_match(request.match_id)
        if match.status == 'completed' and match.winner != request.winner:
            if self._has_resolved_dependents(match):
                raise MatchResultError(
                    f"Match {match.id} already decided later matches; its result can no longer change"
                )
            logger.info("Correcting result of match %s: %s -> %s", match.id, match.winner, request.winner)
        return self.store.complete_match(match.id, request.winner)

    def _has_resolved_dependents(self, match) -> bool:
        link = self.store.get_group_for_match(match.id)
        if link is not None:
            dependents = self.store.get_group_dependent_slots(link.group)
        else:
            slot = self.store.get_slot_by_match(match.id)
            dependents = self.store.get_dependent_slots(slot.tournament, slot.id) if slot else []
        return any(s.match is not None for s in dependents)

    def on_match_updated(self, match):
        return self.resolver.on_match_completed(match)
