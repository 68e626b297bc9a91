"""
Tests for model classes.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from raceday.models import GroupRankSource, Match, Slot, SlotSource, Tournament, group_letter


class TestTournament:
    """Tests for Tournament model."""

    def test_tournament_creation(self):
        tournament = Tournament(id='t1', session='s1', name='Cup', groups_count=2, advancement_count=1,
                                elimination_type='single')
        assert tournament.deleted_at is None
        assert tournament.created_at is not None
        assert tournament.bracket_tracks == []

    def test_unknown_elimination_type(self):
        with pytest.raises(ValueError):
            Tournament(id='t1', session='s1', name='Cup', groups_count=2, advancement_count=1,
                       elimination_type='swiss')


class TestGroupLetter:
    """Tests for group_letter."""

    def test_letters(self):
        assert [group_letter(i) for i in (0, 1, 25, 26, 27, 51, 52)] == ['A', 'B', 'Z', 'AA', 'AB', 'AZ', 'BA']


class TestSources:
    """Tests for slot sources."""

    def test_equality(self):
        assert GroupRankSource('g0', 1) == GroupRankSource('g0', 1)
        assert GroupRankSource('g0', 1) != GroupRankSource('g0', 2)
        assert SlotSource(3, 'winner') == SlotSource(3, 'winner')
        assert SlotSource(3, 'winner') != SlotSource(3, 'loser')
        assert len({SlotSource(3, 'winner'), SlotSource(3, 'winner')}) == 1

    def test_unknown_progression(self):
        with pytest.raises(ValueError):
            SlotSource(1, 'draw')


class TestSlot:
    """Tests for Slot model."""

    def test_needs_two_sources(self):
        with pytest.raises(ValueError):
            Slot(id=1, tournament='t1', bracket='upper', round=2, position=1,
                 sources=(GroupRankSource('g0', 1),))

    def test_entry_slot(self):
        entry = Slot(id=1, tournament='t1', bracket='upper', round=2, position=1,
                     sources=(GroupRankSource('g0', 1), SlotSource(0, 'winner')))
        later = Slot(id=2, tournament='t1', bracket='upper', round=2, position=2,
                     sources=(SlotSource(1, 'winner'), SlotSource(0, 'winner')))
        assert entry.is_entry
        assert not later.is_entry

    def test_unknown_bracket(self):
        with pytest.raises(ValueError):
            Slot(id=1, tournament='t1', bracket='silver', round=2, position=1,
                 sources=(GroupRankSource('g0', 1), GroupRankSource('g1', 1)))


class TestMatch:
    """Tests for Match model."""

    def test_loser(self):
        match = Match(id='m1', session='s1', user_a='a', user_b='b', status='completed', winner='b')
        assert match.loser == 'a'
        assert match.participants == ('a', 'b')

    def test_no_loser_without_winner(self):
        assert Match(id='m1', session='s1', user_a='a', user_b='b').loser is None

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            Match(id='m1', session='s1', status='abandoned')
