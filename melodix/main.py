#!/usr/bin/env python3
"""
Melodix - Local music player core

Usage:
    python -m melodix          # Play the saved session (or the whole catalog)
    python -m melodix --mock   # Mock mode (built-in songs, no audio device)
"""
import os
import sys
import time
import logging
from logging.handlers import RotatingFileHandler

from .config import (
    CATALOG_PATH, SESSION_PATH, MOCK_MODE, SAMPLE_RATE, CROSSFADE_DURATION,
    LOG_DIR, LOG_FILE, LOG_MAX_BYTES, LOG_BACKUP_COUNT,
)
from .audio import PlaybackEngine, NullOutput
from .audio.decoder import decode, tone
from .controllers import PlayerController
from .library import LibraryStore
from .managers import QueueManager
from .storage import JsonFileStore, MemoryStore

STATUS_INTERVAL = 10  # seconds between status log lines


def setup_logging():
    """Configure logging with console and rotating file handler."""
    # Determine log level from environment or default to INFO
    level_name = os.environ.get('MELODIX_LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)

    # File handler with rotation (skipped when the data dir is not writable)
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        root.addHandler(file_handler)
        root.info(f'Logging to: {LOG_FILE}')
    except OSError as e:
        root.warning(f'Could not create log file: {e}')

    # Quiet down noisy libraries
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('pydub').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)


def log_system_info(logger: logging.Logger):
    """Log system information at startup."""
    import platform

    logger.info('=' * 50)
    logger.info('MELODIX STARTUP')
    logger.info('=' * 50)
    logger.info(f'Python: {sys.version.split()[0]}')
    logger.info(f'Platform: {platform.system()} {platform.release()}')

    try:
        import numpy
        import scipy
        logger.info(f'numpy {numpy.__version__}, scipy {scipy.__version__}')
    except ImportError as e:
        logger.warning(f'DSP libraries missing: {e}')

    if not MOCK_MODE:
        try:
            import sounddevice as sd
            device = sd.query_devices(kind='output')
            logger.info(f'Output device: {device["name"]}')
        except Exception as e:
            logger.warning(f'No audio output available: {e}')

    logger.info('=' * 50)


def _log_status(logger: logging.Logger, engine: PlaybackEngine, player: PlayerController):
    song = engine.current_song
    if song is None:
        logger.info('Idle')
        return
    state = 'playing' if engine.is_playing else 'paused'
    line = ''
    lines, timed = player.current_lyrics()
    if timed and lines:
        index = player.active_lyric_index()
        line = f' | {lines[index].text}'
    logger.info(f'{state}: {song.artist} - {song.title} '
                f'[{engine.position:.0f}/{engine.duration:.0f}s]{line}')


def main():
    """Entry point for Melodix."""
    setup_logging()

    logger = logging.getLogger(__name__)
    log_system_info(logger)

    if MOCK_MODE:
        logger.info('Mode: MOCK (built-in songs, headless output)')
    logger.info(f'Sample rate: {SAMPLE_RATE} Hz, crossfade: {CROSSFADE_DURATION}s')

    library = LibraryStore(CATALOG_PATH, mock_mode=MOCK_MODE)
    library.load()

    store = MemoryStore() if MOCK_MODE else JsonFileStore(SESSION_PATH)
    queue = QueueManager(store, lookup=library.get)
    queue.load()
    if queue.get_current_song() is None and library.songs:
        queue.set_queue(library.songs, 0)

    if MOCK_MODE:
        engine = PlaybackEngine(output=NullOutput(), decoder=tone)
    else:
        engine = PlaybackEngine(decoder=decode)

    with engine:
        player = PlayerController(engine, queue, library)
        if not player.play_current() and player.last_error is not None:
            logger.error(f'Could not start playback: {player.last_error}')

        try:
            while True:
                if MOCK_MODE:
                    # Nothing pulls audio headless; advance the clock ourselves
                    for _ in range(STATUS_INTERVAL):
                        engine.render(engine.sample_rate)
                        time.sleep(1)
                else:
                    time.sleep(STATUS_INTERVAL)
                _log_status(logger, engine, player)
        except KeyboardInterrupt:
            logger.info('Interrupted, shutting down')
        finally:
            player.close()


if __name__ == '__main__':
    main()
