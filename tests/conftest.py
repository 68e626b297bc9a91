"""
Shared pytest fixtures for tournament engine tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from raceday.commands import CreateTournamentRequest
from raceday.store import MemoryStore
from raceday.tournament import TournamentManager


def make_players(count):
    """p01, p02, ... with p01 the strongest."""
    players = [f"p{i:02d}" for i in range(1, count + 1)]
    ratings = {p: 2000 - 10 * i for i, p in enumerate(players)}
    return players, ratings


def create_request(groups_count=2, advancement_count=2, elimination_type='single', **kwargs):
    return CreateTournamentRequest(
        session=kwargs.pop('session', 'session-1'),
        name=kwargs.pop('name', 'Friday Cup'),
        groups_count=groups_count,
        advancement_count=advancement_count,
        elimination_type=elimination_type,
        **kwargs
    )


def play_group_stage(manager, tournament_id, winner=min):
    """Complete every group match; by default the lower id wins."""
    for link, match in manager.store.get_group_stage_matches(tournament_id):
        manager.store.complete_match(match.id, winner(match.user_a, match.user_b))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def manager_factory(store):
    """Build a manager whose session has `count` rated players."""
    def factory(count, ratings=None, **kwargs):
        players, default_ratings = make_players(count)
        ratings = default_ratings if ratings is None else ratings
        return TournamentManager(
            store,
            signups=lambda session: players,
            ratings=lambda ids: {i: ratings[i] for i in ids if i in ratings},
            names=lambda user: user.upper(),
            **kwargs
        )
    return factory
