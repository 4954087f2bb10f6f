"""
LRC Parser - Timed lyric parsing and formatting.

Each line may carry any number of [m:ss] or [m:ss.xx] tags. A line with
two tags yields two entries sharing the same text (repeated refrains).
"""
import re
from bisect import bisect_right
from typing import List, Optional

from ..models import LyricLine

TIME_TAG = re.compile(r'\[(\d+):(\d+(?:\.\d+)?)\]')


class LrcParser:
    """Parses and formats LRC lyric documents."""

    @staticmethod
    def parse(raw: Optional[str]) -> List[LyricLine]:
        """Parse raw LRC text into lines sorted by timestamp."""
        if not raw:
            return []

        result: List[LyricLine] = []
        for line in raw.splitlines():
            text = TIME_TAG.sub('', line).strip()
            if not text:
                continue
            for minutes, seconds in TIME_TAG.findall(line):
                result.append(LyricLine(time=int(minutes) * 60 + float(seconds), text=text))

        # Stable: equal timestamps keep source order
        result.sort(key=lambda l: l.time)
        return result

    @staticmethod
    def is_timed(content: Optional[str]) -> bool:
        """True if content carries at least one timestamp tag."""
        return bool(content) and TIME_TAG.search(content) is not None

    @staticmethod
    def format_timestamp(seconds: float) -> str:
        """Format seconds as mm:ss.xx"""
        seconds = max(0.0, seconds)
        mins = int(seconds // 60)
        secs = seconds - mins * 60
        return f'{mins:02d}:{secs:05.2f}'

    @classmethod
    def stringify(cls, lines: List[LyricLine]) -> str:
        """Convert lines back into LRC text."""
        return '\n'.join(f'[{cls.format_timestamp(l.time)}]{l.text}' for l in lines)

    @staticmethod
    def active_index(lines: List[LyricLine], position: float) -> int:
        """Index of the line being sung at position (seconds).

        Returns 0 before the first line and -1 when there are no lines.
        """
        if not lines:
            return -1
        index = bisect_right([l.time for l in lines], position) - 1
        return max(0, index)
