"""
Tests for smart playlist rules - evaluation and arena editing.
"""
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from melodix.library.rules import (
    SmartPlaylistEngine, SmartRule, SmartRuleGroup, RuleArena, tree_from_dict,
)
from melodix.models import Song


def matching_ids(songs, group):
    return [s.id for s in SmartPlaylistEngine.filter_library(songs, group)]


class TestOperators:
    """Tests for individual rule operators."""

    def test_contains_is_case_insensitive(self, sample_songs):
        group = SmartRuleGroup('and', (SmartRule('title', 'contains', 'MIDNIGHT'),))
        assert matching_ids(sample_songs, group) == ['1', '3']

    def test_not_contains(self, sample_songs):
        group = SmartRuleGroup('and', (SmartRule('artist', 'not-contains', 'cold'),))
        assert matching_ids(sample_songs, group) == ['1', '2', '4']

    def test_starts_and_ends(self, sample_songs):
        starts = SmartRuleGroup('and', (SmartRule('title', 'starts', 'mid'),))
        ends = SmartRuleGroup('and', (SmartRule('album', 'ends', 'up'),))
        assert matching_ids(sample_songs, starts) == ['1', '3']
        assert matching_ids(sample_songs, ends) == ['1', '2']

    def test_is_uses_strict_equality(self, sample_songs):
        as_number = SmartRuleGroup('and', (SmartRule('year', 'is', 2011),))
        as_text = SmartRuleGroup('and', (SmartRule('year', 'is', '2011'),))
        assert matching_ids(sample_songs, as_number) == ['1', '2']
        assert matching_ids(sample_songs, as_text) == []

    def test_is_not(self, sample_songs):
        group = SmartRuleGroup('and', (SmartRule('genre', 'is-not', 'Electronic'),))
        assert matching_ids(sample_songs, group) == ['3', '5']

    def test_numeric_comparison_coerces_strings(self, sample_songs):
        group = SmartRuleGroup('and', (SmartRule('playCount', 'greater', '10'),))
        assert matching_ids(sample_songs, group) == ['1', '4']

    def test_less(self, sample_songs):
        group = SmartRuleGroup('and', (SmartRule('duration', 'less', 270),))
        assert matching_ids(sample_songs, group) == ['1', '5']

    def test_unparseable_number_never_matches(self, sample_songs):
        greater = SmartRuleGroup('and', (SmartRule('year', 'greater', 'abc'),))
        less = SmartRuleGroup('and', (SmartRule('year', 'less', 'abc'),))
        assert matching_ids(sample_songs, greater) == []
        assert matching_ids(sample_songs, less) == []

    def test_boolean_fields(self, sample_songs):
        lyrics = SmartRuleGroup('and', (SmartRule('hasLyrics', 'is', True),))
        favorite = SmartRuleGroup('and', (SmartRule('isFavorite', 'contains', 'true'),))
        assert matching_ids(sample_songs, lyrics) == ['5']
        assert matching_ids(sample_songs, favorite) == ['3']

    def test_unknown_operator_fails_closed(self, sample_songs):
        group = SmartRuleGroup('and', (SmartRule('title', 'sounds-like', 'x'),))
        assert matching_ids(sample_songs, group) == []

    def test_unknown_field_contains_empty(self):
        song = Song(id='x', title='Anything')
        assert SmartPlaylistEngine.evaluate_rule(song, SmartRule('mood', 'contains', ''))
        assert not SmartPlaylistEngine.evaluate_rule(song, SmartRule('mood', 'contains', 'happy'))


class TestGroups:
    """Tests for AND/OR nesting."""

    def test_empty_root_matches_nothing(self, sample_songs):
        assert matching_ids(sample_songs, SmartRuleGroup('and', ())) == []
        assert matching_ids(sample_songs, SmartRuleGroup('or', ())) == []
        assert matching_ids(sample_songs, None) == []

    def test_nested_or_inside_and(self, sample_songs):
        group = SmartRuleGroup('and', (
            SmartRule('genre', 'is', 'Electronic'),
            SmartRuleGroup('or', (
                SmartRule('artist', 'is', 'deadmau5'),
                SmartRule('title', 'is', 'Wait'),
            )),
        ))
        assert matching_ids(sample_songs, group) == ['2', '4']

    def test_nested_empty_and_group_is_vacuous(self, sample_songs):
        group = SmartRuleGroup('and', (
            SmartRule('artist', 'is', 'Coldplay'),
            SmartRuleGroup('and', ()),
        ))
        assert matching_ids(sample_songs, group) == ['3', '5']

    def test_nested_empty_or_group_fails(self, sample_songs):
        group = SmartRuleGroup('or', (
            SmartRule('artist', 'is', 'Coldplay'),
            SmartRuleGroup('or', ()),
        ))
        assert matching_ids(sample_songs, group) == ['3', '5']

    def test_result_preserves_library_order(self, sample_songs):
        group = SmartRuleGroup('or', (SmartRule('id', 'is', 'x'), SmartRule('year', 'greater', 2000)))
        assert matching_ids(list(reversed(sample_songs)), group) == ['4', '3', '2', '1']


class TestRuleArena:
    """Tests for handle-based editing."""

    def test_build_and_evaluate(self, sample_songs):
        arena = RuleArena('and')
        arena.add_rule(arena.root, 'genre', 'is', 'Alternative')
        sub = arena.add_group(arena.root, 'or')
        arena.add_rule(sub, 'title', 'is', 'Yellow')
        arena.add_rule(sub, 'year', 'greater', 2013)

        assert matching_ids(sample_songs, arena.to_tree()) == ['3', '5']

    def test_update_rule(self):
        arena = RuleArena()
        handle = arena.add_rule(arena.root)
        arena.update_rule(handle, field='artist', value='M83')
        assert arena.node(handle) == SmartRule('artist', 'contains', 'M83')

    def test_update_rule_rejects_unknown_attribute(self):
        arena = RuleArena()
        handle = arena.add_rule(arena.root)
        with pytest.raises(TypeError):
            arena.update_rule(handle, colour='red')

    def test_remove_subtree(self):
        arena = RuleArena()
        sub = arena.add_group(arena.root, 'or')
        inner = arena.add_rule(sub, 'title', 'is', 'x')
        keep = arena.add_rule(arena.root, 'year', 'less', 2000)

        arena.remove(sub)

        assert sub not in arena
        assert inner not in arena
        assert arena.children(arena.root) == [keep]
        assert len(arena) == 2

    def test_root_cannot_be_removed(self):
        arena = RuleArena()
        with pytest.raises(ValueError):
            arena.remove(arena.root)

    def test_rule_is_not_a_parent(self):
        arena = RuleArena()
        handle = arena.add_rule(arena.root)
        with pytest.raises(TypeError):
            arena.add_rule(handle)

    def test_unknown_handle(self):
        arena = RuleArena()
        with pytest.raises(KeyError):
            arena.node(999)

    def test_invalid_logic(self):
        arena = RuleArena()
        with pytest.raises(ValueError):
            arena.set_logic(arena.root, 'xor')

    def test_handles_are_stable_after_removal(self):
        arena = RuleArena()
        first = arena.add_rule(arena.root, 'title', 'is', 'a')
        second = arena.add_rule(arena.root, 'title', 'is', 'b')
        arena.remove(first)
        third = arena.add_rule(arena.root, 'title', 'is', 'c')

        assert arena.node(second) == SmartRule('title', 'is', 'b')
        assert third not in (first, second)

    def test_dict_round_trip(self):
        data = {
            'logic': 'or',
            'rules': [
                {'field': 'artist', 'operator': 'is', 'value': 'M83'},
                {'logic': 'and', 'rules': [
                    {'field': 'year', 'operator': 'greater', 'value': 2010},
                ]},
            ],
        }
        arena = RuleArena.from_dict(data)
        tree = arena.to_tree()

        assert tree == tree_from_dict(data)
        assert tree_from_dict(arena.to_dict()) == tree
