"""
Tests for the in-memory and YAML-backed stores.
"""
import threading
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import create_request, make_players, play_group_stage
from raceday.errors import MatchResultError, NotFoundError
from raceday.models import Match
from raceday.store import MemoryStore, YamlStore
from raceday.tournament import TournamentManager


def make_manager(store, count=8):
    players, ratings = make_players(count)
    return TournamentManager(store, signups=lambda session: players, ratings=lambda ids: ratings)


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_insert_structure_is_all_or_nothing(self, store):
        manager = make_manager(store)
        structure = manager.generate_tournament_structure(create_request())
        structure.group_matches.append(None)  # breaks halfway through the insert

        with pytest.raises(AttributeError):
            store.insert_structure(structure)

        assert store.tournaments == {}
        assert store.matches == {}
        assert store.slots == {}

    def test_duplicate_tournament_rejected(self, store):
        manager = make_manager(store)
        structure = manager.generate_tournament_structure(create_request())
        store.insert_structure(structure)
        with pytest.raises(ValueError):
            store.insert_structure(structure)
        assert len(store.list_tournaments()) == 1

    def test_complete_match_requires_winner(self, store):
        store.create_match(Match(id='m1', session='s1', user_a='a', user_b='b'))
        with pytest.raises(MatchResultError):
            store.complete_match('m1', None)
        with pytest.raises(MatchResultError):
            store.complete_match('m1', 'c')
        assert store.get_match('m1').status == 'planned'

    def test_complete_match_requires_both_players(self, store):
        store.create_match(Match(id='m1', session='s1', user_a='a'))
        with pytest.raises(MatchResultError):
            store.complete_match('m1', 'a')

    def test_complete_match_notifies_subscribers(self, store):
        seen = []
        store.subscribe(seen.append)
        store.create_match(Match(id='m1', session='s1', user_a='a', user_b='b'))
        store.complete_match('m1', 'b')
        assert [(m.id, m.winner, m.loser) for m in seen] == [('m1', 'b', 'a')]

    def test_set_player(self, store):
        store.create_match(Match(id='m1', session='s1'))
        store.set_player('m1', 'B', 'b')
        assert store.get_match('m1').participants == (None, 'b')
        with pytest.raises(ValueError):
            store.set_player('m1', 'C', 'c')

    def test_attach_match_once(self, store):
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        slot = store.get_slots(tournament_id)[0]
        store.attach_match(tournament_id, slot.id, 'm1')
        store.attach_match(tournament_id, slot.id, 'm1')
        with pytest.raises(ValueError):
            store.attach_match(tournament_id, slot.id, 'm2')

    def test_soft_delete_hides_tournament(self, store):
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        store.soft_delete_tournament(tournament_id)
        with pytest.raises(NotFoundError):
            store.get_tournament(tournament_id)
        assert store.get_tournament(tournament_id, include_deleted=True).deleted_at is not None
        assert store.list_tournaments() == []

    def test_soft_delete_releases_slot_locks(self, store):
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        play_group_stage(manager, tournament_id)
        assert any(key[0] == tournament_id for key in store._slot_locks)
        store.soft_delete_tournament(tournament_id)
        assert not any(key[0] == tournament_id for key in store._slot_locks)

    def test_unknown_ids(self, store):
        with pytest.raises(NotFoundError):
            store.get_match('nope')
        with pytest.raises(NotFoundError):
            store.get_slot('t1', 1)
        with pytest.raises(KeyError):
            store.get_group('nope')

    def test_dependent_slots(self, store):
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        semi, _, final = store.get_slots(tournament_id)
        assert store.get_dependent_slots(tournament_id, semi.id) == [final]
        group = store.get_groups(tournament_id)[0]
        assert len(store.get_group_dependent_slots(group.id)) == 2


class TestYamlStore:
    """Tests for YamlStore persistence."""

    def test_writes_one_file_per_tournament(self, tmp_path):
        store = YamlStore(str(tmp_path))
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        assert (tmp_path / f"tournament-{tournament_id}.yaml").exists()

    def test_round_trip(self, tmp_path):
        store = YamlStore(str(tmp_path))
        manager = make_manager(store)
        request = create_request(elimination_type='double', bracket_tracks=['Spa'])
        tournament_id = manager.create_tournament(request)['id']
        play_group_stage(manager, tournament_id)

        reloaded = YamlStore(str(tmp_path))
        tournament = reloaded.get_tournament(tournament_id)
        assert tournament.name == 'Friday Cup'
        assert tournament.elimination_type == 'double'
        assert tournament.bracket_tracks == ['Spa']

        saved_slots = store.get_slots(tournament_id)
        loaded_slots = reloaded.get_slots(tournament_id)
        assert [(s.id, s.bracket, s.round, s.position, s.sources, s.match) for s in loaded_slots] == \
            [(s.id, s.bracket, s.round, s.position, s.sources, s.match) for s in saved_slots]

        completed = [m for m in reloaded.get_tournament_matches(tournament_id) if m.status == 'completed']
        assert len(completed) == 12

    def test_second_store_sees_results(self, tmp_path):
        """Two stores on one directory behave like two processes."""
        first = YamlStore(str(tmp_path))
        manager = make_manager(first)
        tournament_id = manager.create_tournament(create_request())['id']

        second = YamlStore(str(tmp_path))
        match = second.get_group_stage_matches(tournament_id)[0][1]
        second.complete_match(match.id, match.user_a)

        assert first.get_match(match.id).winner == match.user_a

    def test_soft_delete_persists(self, tmp_path):
        store = YamlStore(str(tmp_path))
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        store.soft_delete_tournament(tournament_id)
        assert YamlStore(str(tmp_path)).list_tournaments() == []

    def test_soft_delete_removes_slot_lock_files(self, tmp_path):
        store = YamlStore(str(tmp_path))
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        play_group_stage(manager, tournament_id)
        store.soft_delete_tournament(tournament_id)
        assert list(tmp_path.glob(f"tournament-{tournament_id}.slot-*.lock")) == []

    def test_reads_while_another_thread_writes(self, tmp_path):
        store = YamlStore(str(tmp_path))
        manager = make_manager(store)
        tournament_id = manager.create_tournament(create_request())['id']
        stop = threading.Event()
        errors = []

        def read():
            try:
                while not stop.is_set():
                    store.get_tournament_matches(tournament_id)
                    store.get_slots(tournament_id)
            except Exception as e:
                errors.append(e)

        reader = threading.Thread(target=read)
        reader.start()
        try:
            for i in range(50):
                store.create_match(Match(id=f'extra-{i}', session='s1', tournament=tournament_id))
        finally:
            stop.set()
            reader.join()

        assert errors == []
        assert len(YamlStore(str(tmp_path)).get_tournament_matches(tournament_id)) == 12 + 50

    def test_unreadable_file_is_skipped(self, tmp_path):
        (tmp_path / 'tournament-broken.yaml').write_text('')
        store = YamlStore(str(tmp_path))
        assert store.list_tournaments() == []
