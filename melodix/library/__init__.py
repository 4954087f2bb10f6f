"""
Melodix Library - Catalog store and the query engines that run over it.
"""
from .catalog import LibraryStore
from .lyrics import LrcParser
from .rules import SmartPlaylistEngine, SmartRule, SmartRuleGroup, RuleArena
from .search import SearchEngine

__all__ = [
    'LibraryStore',
    'LrcParser',
    'SmartPlaylistEngine',
    'SmartRule',
    'SmartRuleGroup',
    'RuleArena',
    'SearchEngine',
]
