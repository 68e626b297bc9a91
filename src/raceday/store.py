"""
Tournament and match storage.

MemoryStore keeps everything in dictionaries and is what the engine and the
tests run against. YamlStore has the same API and persists one YAML file per
tournament, guarding each file with a FileLock.
"""
import glob
import logging
import os
import threading
from contextlib import contextmanager, suppress
from datetime import datetime

import yaml
from filelock import FileLock

from .errors import MatchResultError, NotFoundError
from .models import (
    SIDES, Group, GroupMatch, GroupPlayer, GroupRankSource, Match, Slot, SlotSource, Tournament,
)

logger = logging.getLogger(__name__)


class MemoryStore:
    def __init__(self):
        self.tournaments = {}
        self.groups = {}
        self.group_players = {}
        self.group_matches = {}  # match id -> GroupMatch
        self.slots = {}  # (tournament id, slot id) -> Slot
        self.matches = {}
        self._listeners = []
        self._lock = threading.RLock()
        self._slot_locks = {}

    # Hooks overridden by persistent stores

    def _before_read(self):
        pass

    @contextmanager
    def _mutate(self, tournament_id):
        with self._lock:
            yield

    # Tournaments

    def insert_structure(self, structure):
        """Store a generated tournament. Either everything is stored or nothing is."""
        with self._lock:
            snapshot = self._snapshot()
            try:
                self._add_structure(structure)
                self._commit(structure.tournament.id)
            except Exception:
                self._restore(snapshot)
                raise
        logger.info(
            "Stored tournament %s with %d groups, %d matches and %d slots",
            structure.tournament.id, len(structure.groups), len(structure.matches), len(structure.slots)
        )

    def _add_structure(self, structure):
        tournament = structure.tournament
        if tournament.id in self.tournaments:
            raise ValueError(f"Tournament {tournament.id} already exists")
        self.tournaments[tournament.id] = tournament
        for group in structure.groups:
            self.groups[group.id] = group
        for gp in structure.group_players:
            self.group_players[gp.id] = gp
        for match in structure.matches:
            self.matches[match.id] = match
        for link in structure.group_matches:
            self.group_matches[link.match] = link
        for slot in structure.slots:
            self.slots[(tournament.id, slot.id)] = slot

    def _commit(self, tournament_id):
        pass

    def _snapshot(self):
        return {name: dict(getattr(self, name))
                for name in ('tournaments', 'groups', 'group_players', 'group_matches', 'slots', 'matches')}

    def _restore(self, snapshot):
        for name, values in snapshot.items():
            setattr(self, name, values)

    def get_tournament(self, tournament_id, include_deleted=False) -> Tournament:
        with self._lock:
            self._before_read()
            tournament = self.tournaments.get(tournament_id)
        if tournament is None or (tournament.deleted_at is not None and not include_deleted):
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return tournament

    def list_tournaments(self):
        with self._lock:
            self._before_read()
            tournaments = [t for t in self.tournaments.values() if t.deleted_at is None]
        return sorted(tournaments, key=lambda t: t.created_at)

    def soft_delete_tournament(self, tournament_id, deleted_at=None):
        self.get_tournament(tournament_id)
        with self._mutate(tournament_id):
            tournament = self.tournaments[tournament_id]
            tournament.deleted_at = deleted_at or datetime.now()
            self._slot_locks = {k: v for k, v in self._slot_locks.items() if k[0] != tournament_id}
        return tournament

    # Groups

    def get_groups(self, tournament_id):
        with self._lock:
            self._before_read()
            groups = [g for g in self.groups.values() if g.tournament == tournament_id]
        return sorted(groups, key=lambda g: g.index)

    def get_group(self, group_id) -> Group:
        with self._lock:
            self._before_read()
            group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return group

    def get_group_players(self, group_id):
        with self._lock:
            self._before_read()
            players = [gp for gp in self.group_players.values() if gp.group == group_id]
        return sorted(players, key=lambda gp: gp.seed)

    def get_group_for_match(self, match_id):
        """The GroupMatch link for a group-stage match, None for any other match."""
        with self._lock:
            self._before_read()
            return self.group_matches.get(match_id)

    def get_group_stage_matches(self, tournament_id):
        with self._lock:
            group_ids = {g.id for g in self.get_groups(tournament_id)}
            links = sorted((l for l in self.group_matches.values() if l.group in group_ids), key=lambda l: l.index)
            return [(link, self.matches[link.match]) for link in links]

    def get_matches_for_group(self, group_id):
        with self._lock:
            self._before_read()
            return [self.matches[l.match] for l in self.group_matches.values() if l.group == group_id]

    # Slots

    def get_slots(self, tournament_id):
        with self._lock:
            self._before_read()
            slots = [s for (tid, _), s in self.slots.items() if tid == tournament_id]
        return sorted(slots, key=lambda s: s.position)

    def get_slot(self, tournament_id, slot_id) -> Slot:
        with self._lock:
            self._before_read()
            slot = self.slots.get((tournament_id, slot_id))
        if slot is None:
            raise NotFoundError(f"Slot {slot_id} of tournament {tournament_id} not found")
        return slot

    def get_slot_by_match(self, match_id):
        with self._lock:
            self._before_read()
            for slot in self.slots.values():
                if slot.match == match_id:
                    return slot
        return None

    def get_dependent_slots(self, tournament_id, slot_id):
        return [
            s for s in self.get_slots(tournament_id)
            if any(isinstance(src, SlotSource) and src.slot == slot_id for src in s.sources)
        ]

    def get_group_dependent_slots(self, group_id):
        group = self.get_group(group_id)
        return [
            s for s in self.get_slots(group.tournament)
            if any(isinstance(src, GroupRankSource) and src.group == group_id for src in s.sources)
        ]

    def attach_match(self, tournament_id, slot_id, match_id):
        self.get_slot(tournament_id, slot_id)
        with self._mutate(tournament_id):
            slot = self.slots[(tournament_id, slot_id)]
            if slot.match is not None and slot.match != match_id:
                raise ValueError(f"Slot {slot_id} already has match {slot.match}")
            slot.match = match_id
        return slot

    @contextmanager
    def slot_lock(self, tournament_id, slot_id):
        """Serialize resolution of one slot."""
        with self._lock:
            lock = self._slot_locks.setdefault((tournament_id, slot_id), threading.Lock())
        with lock:
            yield

    # Matches

    def create_match(self, match: Match) -> Match:
        with self._mutate(match.tournament):
            if match.id in self.matches:
                raise ValueError(f"Match {match.id} already exists")
            self.matches[match.id] = match
        return match

    def get_match(self, match_id) -> Match:
        with self._lock:
            self._before_read()
            match = self.matches.get(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        return match

    def get_tournament_matches(self, tournament_id):
        with self._lock:
            self._before_read()
            return [m for m in self.matches.values() if m.tournament == tournament_id]

    def set_player(self, match_id, side, user):
        if side not in SIDES:
            raise ValueError(f"Unknown side: {side}")
        match = self.get_match(match_id)
        with self._mutate(match.tournament):
            match = self.matches[match_id]
            if side == 'A':
                match.user_a = user
            else:
                match.user_b = user
        return match

    def complete_match(self, match_id, winner):
        """Record a result and notify subscribers."""
        match = self.get_match(match_id)
        with self._mutate(match.tournament):
            match = self.matches[match_id]
            if winner is None:
                raise MatchResultError(f"Match {match_id} cannot be completed without a winner")
            if winner not in match.participants:
                raise MatchResultError(f"Winner {winner} did not play match {match_id}")
            if None in match.participants:
                raise MatchResultError(f"Match {match_id} is still waiting for a participant")
            match.status = 'completed'
            match.winner = winner
        for listener in list(self._listeners):
            listener(match)
        return match

    def subscribe(self, callback):
        """Call `callback(match)` whenever a match is completed."""
        self._listeners.append(callback)


def _dump_source(source):
    if isinstance(source, GroupRankSource):
        return {'group': source.group, 'rank': source.rank}
    return {'slot': source.slot, 'progression': source.progression}


def _load_source(data):
    if 'group' in data:
        return GroupRankSource(data['group'], data['rank'])
    return SlotSource(data['slot'], data['progression'])


class YamlStore(MemoryStore):
    """MemoryStore persisted to tournament-<id>.yaml files in data_dir."""

    def __init__(self, data_dir, lock_timeout=10):
        super().__init__()
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, tournament_id):
        return os.path.join(self.data_dir, f'tournament-{tournament_id}.yaml')

    def _file_lock(self, tournament_id):
        return FileLock(self._path(tournament_id) + '.lock', timeout=self.lock_timeout)

    def _before_read(self):
        with self._lock:
            for path in glob.glob(os.path.join(self.data_dir, 'tournament-*.yaml')):
                self._load_file(path)

    @contextmanager
    def _mutate(self, tournament_id):
        if tournament_id is None:
            with self._lock:
                yield
            return
        with self._lock, self._file_lock(tournament_id):
            path = self._path(tournament_id)
            if os.path.exists(path):
                self._load_file(path)
            yield
            self._write(tournament_id)

    def _commit(self, tournament_id):
        with self._file_lock(tournament_id):
            self._write(tournament_id)

    @contextmanager
    def slot_lock(self, tournament_id, slot_id):
        """Serialize resolution of one slot across threads and processes."""
        path = self._slot_lock_path(tournament_id, slot_id)
        with super().slot_lock(tournament_id, slot_id), FileLock(path, timeout=self.lock_timeout):
            yield

    def _slot_lock_path(self, tournament_id, slot_id):
        return os.path.join(self.data_dir, f"tournament-{tournament_id}.slot-{slot_id}.lock")

    def soft_delete_tournament(self, tournament_id, deleted_at=None):
        tournament = super().soft_delete_tournament(tournament_id, deleted_at)
        for path in glob.glob(self._slot_lock_path(tournament_id, "*")):
            with suppress(FileNotFoundError):
                os.remove(path)
        return tournament

    def _write(self, tournament_id):
        data = self._serialize(tournament_id)
        path = self._path(tournament_id)
        tmp_path = path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, path)

    def _serialize(self, tournament_id):
        t = self.tournaments[tournament_id]
        group_ids = {g.id for g in self.groups.values() if g.tournament == tournament_id}
        return {
            'tournament': {
                'id': t.id,
                'session': t.session,
                'name': t.name,
                'description': t.description,
                'groups_count': t.groups_count,
                'advancement_count': t.advancement_count,
                'elimination_type': t.elimination_type,
                'created_at': t.created_at.isoformat(),
                'deleted_at': t.deleted_at.isoformat() if t.deleted_at else None,
                'group_stage_tracks': list(t.group_stage_tracks),
                'bracket_tracks': list(t.bracket_tracks),
            },
            'groups': [
                {'id': g.id, 'index': g.index}
                for g in sorted(self.groups.values(), key=lambda g: g.index) if g.id in group_ids
            ],
            'group_players': [
                {'id': gp.id, 'group': gp.group, 'user': gp.user, 'seed': gp.seed}
                for gp in self.group_players.values() if gp.group in group_ids
            ],
            'group_matches': [
                {'group': l.group, 'round': l.round, 'index': l.index, 'match': l.match}
                for l in sorted(self.group_matches.values(), key=lambda l: l.index) if l.group in group_ids
            ],
            'matches': [
                {'id': m.id, 'session': m.session, 'user_a': m.user_a, 'user_b': m.user_b,
                 'status': m.status, 'winner': m.winner, 'track': m.track}
                for m in self.matches.values() if m.tournament == tournament_id
            ],
            'slots': [
                {'id': s.id, 'bracket': s.bracket, 'round': s.round, 'position': s.position,
                 'index': s.index, 'match': s.match, 'sources': [_dump_source(src) for src in s.sources]}
                for (tid, _), s in sorted(self.slots.items(), key=lambda item: item[0][1]) if tid == tournament_id
            ],
        }

    def _load_file(self, path):
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data or 'tournament' not in data:
            logger.warning("Skipping unreadable tournament file %s", path)
            return

        t = data['tournament']
        tournament_id = t['id']
        self._forget(tournament_id)

        self.tournaments[tournament_id] = Tournament(
            id=tournament_id,
            session=t['session'],
            name=t['name'],
            description=t.get('description'),
            groups_count=t['groups_count'],
            advancement_count=t['advancement_count'],
            elimination_type=t['elimination_type'],
            created_at=datetime.fromisoformat(t['created_at']),
            deleted_at=datetime.fromisoformat(t['deleted_at']) if t.get('deleted_at') else None,
            group_stage_tracks=t.get('group_stage_tracks'),
            bracket_tracks=t.get('bracket_tracks'),
        )
        for g in data.get('groups') or []:
            self.groups[g['id']] = Group(id=g['id'], tournament=tournament_id, index=g['index'])
        for gp in data.get('group_players') or []:
            self.group_players[gp['id']] = GroupPlayer(**gp)
        for m in data.get('matches') or []:
            self.matches[m['id']] = Match(tournament=tournament_id, **m)
        for l in data.get('group_matches') or []:
            self.group_matches[l['match']] = GroupMatch(**l)
        for s in data.get('slots') or []:
            self.slots[(tournament_id, s['id'])] = Slot(
                id=s['id'], tournament=tournament_id, bracket=s['bracket'], round=s['round'],
                position=s['position'], index=s['index'], match=s.get('match'),
                sources=[_load_source(src) for src in s['sources']],
            )

    def _forget(self, tournament_id):
        group_ids = {gid for gid, g in self.groups.items() if g.tournament == tournament_id}
        self.tournaments.pop(tournament_id, None)
        self.groups = {k: v for k, v in self.groups.items() if k not in group_ids}
        self.group_players = {k: v for k, v in self.group_players.items() if v.group not in group_ids}
        self.group_matches = {k: v for k, v in self.group_matches.items() if v.group not in group_ids}
        self.matches = {k: v for k, v in self.matches.items() if v.tournament != tournament_id}
        self.slots = {k: v for k, v in self.slots.items() if k[0] != tournament_id}
