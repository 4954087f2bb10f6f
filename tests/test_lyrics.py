"""
Tests for LrcParser - parsing, formatting, active line lookup.
"""
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from melodix.library.lyrics import LrcParser
from melodix.models import LyricLine


class TestParse:
    """Tests for LRC parsing."""

    def test_basic_lines_sorted(self):
        raw = '[00:12.50]Second\n[00:05.00]First'
        assert LrcParser.parse(raw) == [LyricLine(5.0, 'First'), LyricLine(12.5, 'Second')]

    def test_multiple_tags_repeat_text(self):
        lines = LrcParser.parse('[00:10.00][01:10.00]Chorus')
        assert lines == [LyricLine(10.0, 'Chorus'), LyricLine(70.0, 'Chorus')]

    def test_tag_without_fraction(self):
        assert LrcParser.parse('[2:05]Late line')[0].time == 125.0

    def test_untagged_and_empty_lines_skipped(self):
        raw = '[ar:Someone]\nPlain text\n[00:01.00]\n[00:02.00]Sung'
        assert LrcParser.parse(raw) == [LyricLine(2.0, 'Sung')]

    def test_equal_timestamps_keep_source_order(self):
        raw = '[00:03.00]A\n[00:01.00]B\n[00:03.00]C'
        assert [l.text for l in LrcParser.parse(raw)] == ['B', 'A', 'C']

    def test_windows_line_endings(self):
        assert len(LrcParser.parse('[00:01.00]One\r\n[00:02.00]Two\r\n')) == 2

    def test_empty_input(self):
        assert LrcParser.parse('') == []
        assert LrcParser.parse(None) == []

    def test_is_timed(self):
        assert LrcParser.is_timed('[00:01.00]x')
        assert not LrcParser.is_timed('just words')
        assert not LrcParser.is_timed(None)


class TestFormat:
    """Tests for timestamp formatting and stringify."""

    @pytest.mark.parametrize('seconds,expected', [
        (0, '00:00.00'),
        (5.5, '00:05.50'),
        (65.25, '01:05.25'),
        (-3, '00:00.00'),
    ])
    def test_format_timestamp(self, seconds, expected):
        assert LrcParser.format_timestamp(seconds) == expected

    def test_stringify_parses_back(self):
        lines = [LyricLine(1.0, 'One'), LyricLine(62.5, 'Two')]
        text = LrcParser.stringify(lines)
        assert text == '[00:01.00]One\n[01:02.50]Two'
        assert LrcParser.parse(text) == lines


class TestActiveIndex:
    """Tests for highlighting the current line."""

    def test_before_first_line(self):
        lines = LrcParser.parse('[00:05.00]A\n[00:10.00]B')
        assert LrcParser.active_index(lines, 1.0) == 0

    def test_between_lines(self):
        lines = LrcParser.parse('[00:05.00]A\n[00:10.00]B\n[00:15.00]C')
        assert LrcParser.active_index(lines, 12.0) == 1
        assert LrcParser.active_index(lines, 10.0) == 1
        assert LrcParser.active_index(lines, 99.0) == 2

    def test_no_lines(self):
        assert LrcParser.active_index([], 3.0) == -1
