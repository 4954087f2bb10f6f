"""
Smart Playlist Engine - Nested AND/OR rule evaluation.

Rule trees are immutable values for evaluation. Editing goes through
RuleArena, which stores nodes by integer handle so lookups are O(1)
and no shared tree is mutated in place.
"""
import math
import logging
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from ..models import Song

logger = logging.getLogger(__name__)

Logic = Literal['and', 'or']

OPERATORS = ('is', 'is-not', 'contains', 'not-contains', 'greater', 'less', 'starts', 'ends')

# Rule document field name -> Song attribute
FIELDS = {
    'title': 'title',
    'artist': 'artist',
    'album': 'album',
    'genre': 'genre',
    'year': 'year',
    'playCount': 'play_count',
    'duration': 'duration',
    'hasLyrics': 'has_lyrics',
    'isFavorite': 'is_favorite',
    'replayGain': 'replay_gain',
    'dateAdded': 'date_added',
}


@dataclass(frozen=True)
class SmartRule:
    field: str
    operator: str
    value: Any = ''


@dataclass(frozen=True)
class SmartRuleGroup:
    logic: Logic = 'and'
    rules: Tuple[Union['SmartRuleGroup', SmartRule], ...] = ()


RuleNode = Union[SmartRuleGroup, SmartRule]


# ============================================
# VALUE COERCION
# ============================================

def _field_value(song: Song, name: str) -> Any:
    attr = FIELDS.get(name)
    if attr is None and name in FIELDS.values():
        attr = name
    if attr is None:
        return None
    return getattr(song, attr, None)


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value).lower()


def _as_number(value: Any) -> float:
    """Numeric coercion; anything unparseable becomes NaN (compares false)."""
    if value is None:
        return math.nan
    if isinstance(value, (bool, int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return math.nan


def _strict_equal(a: Any, b: Any) -> bool:
    """Equality without cross-type coercion ("5" != 5, True != 1)."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


# ============================================
# EVALUATION
# ============================================

class SmartPlaylistEngine:
    """Pure, deterministic filtering of songs against a rule tree."""

    @classmethod
    def filter_library(cls, songs: List[Song], group: Optional[SmartRuleGroup]) -> List[Song]:
        """Songs matching the group. An empty root group matches nothing."""
        if group is None or not group.rules:
            return []
        return [song for song in songs if cls.evaluate(song, group)]

    @classmethod
    def evaluate(cls, song: Song, node: RuleNode) -> bool:
        if isinstance(node, SmartRuleGroup):
            if node.logic == 'and':
                return all(cls.evaluate(song, child) for child in node.rules)
            if node.logic == 'or':
                return any(cls.evaluate(song, child) for child in node.rules)
            return False
        return cls.evaluate_rule(song, node)

    @staticmethod
    def evaluate_rule(song: Song, rule: SmartRule) -> bool:
        song_value = _field_value(song, rule.field)
        rule_value = rule.value
        op = rule.operator

        if op == 'is':
            return _strict_equal(song_value, rule_value)
        if op == 'is-not':
            return not _strict_equal(song_value, rule_value)
        if op == 'contains':
            return _as_text(rule_value) in _as_text(song_value)
        if op == 'not-contains':
            return _as_text(rule_value) not in _as_text(song_value)
        if op == 'starts':
            return _as_text(song_value).startswith(_as_text(rule_value))
        if op == 'ends':
            return _as_text(song_value).endswith(_as_text(rule_value))
        if op == 'greater':
            return _as_number(song_value) > _as_number(rule_value)
        if op == 'less':
            return _as_number(song_value) < _as_number(rule_value)

        logger.debug(f'Unknown rule operator {op!r}, rule fails closed')
        return False


# ============================================
# EDITING
# ============================================

@dataclass
class _RuleEntry:
    field: str
    operator: str
    value: Any
    parent: int


@dataclass
class _GroupEntry:
    logic: Logic
    parent: Optional[int]
    children: List[int] = field(default_factory=list)


class RuleArena:
    """
    Editable rule tree addressed by stable integer handles.

    The root group always exists and cannot be removed.
    """

    def __init__(self, logic: Logic = 'and'):
        self._ids = itertools.count(1)
        self._nodes: Dict[int, Union[_RuleEntry, _GroupEntry]] = {}
        self.root = self._insert(_GroupEntry(logic=_check_logic(logic), parent=None))

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, handle: int) -> bool:
        return handle in self._nodes

    def _insert(self, entry) -> int:
        handle = next(self._ids)
        self._nodes[handle] = entry
        if entry.parent is not None:
            self._group(entry.parent).children.append(handle)
        return handle

    def _group(self, handle: int) -> _GroupEntry:
        entry = self._nodes[handle]
        if not isinstance(entry, _GroupEntry):
            raise TypeError(f'Node {handle} is a rule, not a group')
        return entry

    def _rule(self, handle: int) -> _RuleEntry:
        entry = self._nodes[handle]
        if not isinstance(entry, _RuleEntry):
            raise TypeError(f'Node {handle} is a group, not a rule')
        return entry

    def node(self, handle: int) -> RuleNode:
        """Immutable view of the node (and its subtree) at handle."""
        entry = self._nodes[handle]
        if isinstance(entry, _RuleEntry):
            return SmartRule(entry.field, entry.operator, entry.value)
        return SmartRuleGroup(entry.logic, tuple(self.node(child) for child in entry.children))

    def children(self, handle: int) -> List[int]:
        return list(self._group(handle).children)

    def add_rule(self, parent: int, field: str = 'title', operator: str = 'contains', value: Any = '') -> int:
        self._group(parent)
        return self._insert(_RuleEntry(field=field, operator=operator, value=value, parent=parent))

    def add_group(self, parent: int, logic: Logic = 'and') -> int:
        self._group(parent)
        return self._insert(_GroupEntry(logic=_check_logic(logic), parent=parent))

    def update_rule(self, handle: int, **changes):
        """Update field / operator / value of a rule."""
        entry = self._rule(handle)
        for key, value in changes.items():
            if key not in ('field', 'operator', 'value'):
                raise TypeError(f'Unknown rule attribute: {key}')
            setattr(entry, key, value)

    def set_logic(self, handle: int, logic: Logic):
        self._group(handle).logic = _check_logic(logic)

    def remove(self, handle: int):
        """Remove a node together with its subtree."""
        if handle == self.root:
            raise ValueError('The root group cannot be removed')
        entry = self._nodes[handle]
        self._group(entry.parent).children.remove(handle)

        pending = [handle]
        while pending:
            current = pending.pop()
            removed = self._nodes.pop(current)
            if isinstance(removed, _GroupEntry):
                pending.extend(removed.children)

    def to_tree(self) -> SmartRuleGroup:
        return self.node(self.root)

    @classmethod
    def from_tree(cls, group: SmartRuleGroup) -> 'RuleArena':
        arena = cls(group.logic)

        def load(parent: int, rules):
            for item in rules:
                if isinstance(item, SmartRuleGroup):
                    load(arena.add_group(parent, item.logic), item.rules)
                else:
                    arena.add_rule(parent, item.field, item.operator, item.value)

        load(arena.root, group.rules)
        return arena

    # ============================================
    # SERIALIZATION ({logic, rules: [...]})
    # ============================================

    def to_dict(self, handle: Optional[int] = None) -> dict:
        handle = self.root if handle is None else handle
        entry = self._nodes[handle]
        if isinstance(entry, _RuleEntry):
            return {'id': str(handle), 'field': entry.field,
                    'operator': entry.operator, 'value': entry.value}
        return {'id': str(handle), 'logic': entry.logic,
                'rules': [self.to_dict(child) for child in entry.children]}

    @classmethod
    def from_dict(cls, data: dict) -> 'RuleArena':
        return cls.from_tree(tree_from_dict(data))


def tree_from_dict(data: dict) -> SmartRuleGroup:
    """Build an immutable tree from the stored {logic, rules} shape."""
    rules = []
    for item in data.get('rules', []):
        if 'rules' in item:
            rules.append(tree_from_dict(item))
        else:
            rules.append(SmartRule(item.get('field', ''), item.get('operator', ''), item.get('value')))
    return SmartRuleGroup(_check_logic(data.get('logic', 'and')), tuple(rules))


def _check_logic(logic: str) -> Logic:
    if logic not in ('and', 'or'):
        raise ValueError(f'Invalid group logic: {logic!r}')
    return logic
