"""
Player Controller - Connects the queue to the playback engine.

The queue is the source of truth for "what should be playing". This
controller listens to it and loads the current entry on the engine
whenever that entry changes, then proposes a play-count increment to
the library.

Transition policy:
- automatic advance (track ending): crossfade
- explicit jumps/skips: instant unless the caller asks for a crossfade

Engine hooks arrive on worker threads. Every read-decide-mutate step
runs under the queue lock, so they serialize with mutations made
directly on the queue from other threads.
"""
import random
import logging
import threading
from typing import List, Optional, Tuple

from ..config import PREVIOUS_RESTART_SECONDS
from ..errors import MelodixError, ResourceUnavailableError
from ..library.lyrics import LrcParser
from ..models import Song, LyricLine, QueueState

logger = logging.getLogger(__name__)


class PlayerController:
    """Drives a PlaybackEngine from a QueueManager."""

    def __init__(self, engine, queue, library=None, rng: Optional[random.Random] = None):
        """
        Args:
            engine: PlaybackEngine (or anything with the same play/pause API)
            queue: QueueManager whose current entry is played
            library: Optional LibraryStore for play counts and fresh lyrics
            rng: Random source for shuffle picks
        """
        self.engine = engine
        self.queue = queue
        self.library = library
        self.rng = rng or random.Random()

        self.last_error: Optional[ResourceUnavailableError] = None
        self._playing_id: Optional[str] = None
        self._seen_id: Optional[str] = None  # current entry in the last queue state
        self._crossfade = False
        self._force = False
        self._attached = False
        self._lock = threading.RLock()

        engine.on_track_ending = self._on_track_ending
        engine.on_track_end = self.on_track_end
        self._unsubscribe = queue.subscribe(self._on_queue_change)
        self._attached = True

    # ============================================
    # QUEUE LISTENER
    # ============================================

    def _on_queue_change(self, state: QueueState):
        song = state.current_song
        song_id = song.id if song is not None else None
        changed = song_id != self._seen_id
        self._seen_id = song_id

        if not self._attached:
            return  # initial replay; play_current() starts playback explicitly

        if song is None:
            if changed:
                logger.info('Queue has no current song, pausing')
                self.engine.pause()
                self._playing_id = None
            return

        if changed or self._force:
            self._force = False
            self._play(song, self._crossfade)

    def _play(self, song: Song, crossfade: bool) -> bool:
        try:
            self.engine.play(song, crossfade=crossfade)
        except ResourceUnavailableError as e:
            # Engine keeps the previous audio audible
            self.last_error = e
            logger.warning(f'Could not start "{song.title}", previous audio continues')
            return False

        self.last_error = None
        self._playing_id = song.id

        if self.library is not None:
            try:
                self.library.record_play(song.id)
            except MelodixError as e:
                logger.warning(f'Could not record play for "{song.title}": {e}')
        return True

    def _navigate(self, mutate, crossfade: bool):
        """Run a queue mutation; the resulting current entry is (re)started."""
        with self.queue.lock:
            self._crossfade = crossfade
            self._force = True
            try:
                mutate()
            finally:
                self._crossfade = False
                self._force = False

    # ============================================
    # TRANSPORT
    # ============================================

    def play_current(self, crossfade: bool = False) -> bool:
        """Start the queue's current entry (e.g. after restoring a session)."""
        with self._lock:
            song = self.queue.get_current_song()
            if song is None:
                return False
            return self._play(song, crossfade)

    def play_index(self, index: int, crossfade: bool = False) -> bool:
        """Jump to a queue position and play it. False if out of range."""
        with self._lock, self.queue.lock:
            if not 0 <= index < len(self.queue):
                return False
            self._navigate(lambda: self.queue.jump_to(index), crossfade)
            return self.last_error is None

    def _pick_other(self, state: QueueState) -> int:
        choices = [i for i in range(len(state.items)) if i != state.current_index]
        return self.rng.choice(choices)

    def skip_next(self, crossfade: bool = False) -> Optional[Song]:
        """
        Move to the next entry.

        Repeat one replays the current entry, shuffle picks a random other
        entry, otherwise the cursor advances (wrapping at the end).
        """
        with self._lock, self.queue.lock:
            state = self.queue.state
            if not state.items:
                return None

            current = state.current_song
            if state.repeat_mode == 'one' and current is not None:
                self._play(current, crossfade)
            elif state.shuffled and len(state.items) > 1:
                index = self._pick_other(state)
                self._navigate(lambda: self.queue.jump_to(index), crossfade)
            else:
                self._navigate(self.queue.next, crossfade)
            return self.queue.get_current_song()

    def skip_previous(self, crossfade: bool = False) -> Optional[Song]:
        """Restart the current entry if past the first seconds, else go back."""
        with self._lock, self.queue.lock:
            state = self.queue.state
            if not state.items:
                return None

            current = state.current_song
            if current is not None and self.engine.position > PREVIOUS_RESTART_SECONDS:
                self.engine.seek(0.0)
                return current

            if state.repeat_mode == 'one' and current is not None:
                self._play(current, crossfade)
            elif state.shuffled and len(state.items) > 1:
                index = self._pick_other(state)
                self._navigate(lambda: self.queue.jump_to(index), crossfade)
            else:
                self._navigate(self.queue.prev, crossfade)
            return self.queue.get_current_song()

    def toggle_pause(self) -> bool:
        """Pause or resume. Returns True if now playing."""
        with self._lock:
            if self.engine.is_playing:
                self.engine.pause()
                return False
            if self._playing_id is None:
                return self.play_current()
            self.engine.resume()
            return self.engine.is_playing

    # ============================================
    # AUTOMATIC ADVANCE
    # ============================================

    def _advance(self) -> Optional[Song]:
        state = self.queue.state
        if not state.items:
            return None
        at_end = state.current_index >= len(state.items) - 1
        if state.repeat_mode == 'off' and not state.shuffled and at_end:
            logger.info('Reached end of queue')
            return None
        return self.skip_next(crossfade=True)

    def _on_track_ending(self, song: Song):
        """Engine hook: the active song has entered its crossfade window."""
        with self._lock, self.queue.lock:
            if song.id != self._playing_id:
                return
            logger.debug(f'"{song.title}" ending, advancing with crossfade')
            self._advance()

    def on_track_end(self, song: Optional[Song] = None):
        """Engine hook: the active song ran out of audio."""
        with self._lock, self.queue.lock:
            if song is not None and song.id != self._playing_id:
                return  # already advanced during the crossfade window
            self._advance()

    # ============================================
    # LYRICS
    # ============================================

    def current_lyrics(self) -> Tuple[List[LyricLine], bool]:
        """Parsed lines of the current song and whether they are timed."""
        song = self.queue.get_current_song()
        if song is None:
            return [], False
        if self.library is not None:
            song = self.library.get(song.id) or song
        return LrcParser.parse(song.lrc_content), LrcParser.is_timed(song.lrc_content)

    def active_lyric_index(self) -> int:
        lines, timed = self.current_lyrics()
        if not timed:
            return -1
        return LrcParser.active_index(lines, self.engine.position)

    def close(self):
        self._unsubscribe()
        if self.engine.on_track_end == self.on_track_end:
            self.engine.on_track_end = None
        if self.engine.on_track_ending == self._on_track_ending:
            self.engine.on_track_ending = None
