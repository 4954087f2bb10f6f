"""
Melodix Configuration - All constants and settings.
"""
import os
import sys
from pathlib import Path

# ============================================
# PATHS
# ============================================

DATA_DIR = Path(os.environ.get('MELODIX_DATA_DIR', Path.home() / '.melodix'))
CATALOG_PATH = DATA_DIR / 'catalog.json'
SESSION_PATH = DATA_DIR / 'session.json'

# Key under which the queue session blob is stored
SESSION_KEY = 'melodix-queue-v5'

# Logging directory
LOG_DIR = DATA_DIR / 'logs'
LOG_FILE = LOG_DIR / 'melodix.log'
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB per file
LOG_BACKUP_COUNT = 10  # Keep 10 backup files (~50MB total)

# ============================================
# COMMAND LINE FLAGS
# ============================================

MOCK_MODE = '--mock' in sys.argv or '-m' in sys.argv

# ============================================
# AUDIO OUTPUT
# ============================================

SAMPLE_RATE = int(os.environ.get('MELODIX_SAMPLE_RATE', 44100))
CHANNELS = 2
BLOCK_SIZE = 1024  # Frames per realtime callback

# ============================================
# PLAYBACK
# ============================================

CROSSFADE_DURATION = float(os.environ.get('MELODIX_CROSSFADE', 3.0))  # seconds
SMOOTHING_TIME_CONSTANT = 0.1  # EQ and master volume transitions
DEFAULT_MASTER_VOLUME = 1.0

# skip_previous restarts the current song once past this point (seconds)
PREVIOUS_RESTART_SECONDS = 3.0

# ============================================
# EQUALIZER (3-band: low-shelf, peaking, high-shelf)
# ============================================

EQ_BANDS = [
    {'name': 'bass', 'type': 'lowshelf', 'frequency': 100.0},
    {'name': 'mid', 'type': 'peaking', 'frequency': 1000.0},
    {'name': 'treble', 'type': 'highshelf', 'frequency': 10000.0},
]
EQ_Q = 1.0
EQ_GAIN_RANGE = (-24.0, 24.0)  # dB

# ============================================
# LIMITER (fixed, not user-configurable)
# ============================================

LIMITER_THRESHOLD_DB = -1.0
LIMITER_KNEE_DB = 40.0
LIMITER_RATIO = 12.0
LIMITER_ATTACK = 0.0    # seconds
LIMITER_RELEASE = 0.25  # seconds

# ============================================
# ANALYSER
# ============================================

FFT_SIZE = 2048
ANALYSER_SMOOTHING = 0.8
ANALYSER_MIN_DB = -100.0
ANALYSER_MAX_DB = -30.0

# ============================================
# WAVEFORM
# ============================================

WAVEFORM_BARS = 120
WAVEFORM_WORKERS = 2

# ============================================
# LIBRARY & SEARCH
# ============================================

SIMILAR_LIMIT = 5
GROUP_LIMIT = 5
RECENT_LIMIT = 5
RECENT_EMPTY_LIMIT = 10
RECOMMEND_LIMIT = 10
YEAR_PROXIMITY = 2

# ============================================
# ENRICHMENT (best effort)
# ============================================

ENRICHMENT_URL = os.environ.get('MELODIX_ENRICHMENT_URL', 'https://lrclib.net')
ENRICHMENT_TIMEOUT = 10
ENRICHMENT_USER_AGENT = 'melodix/1.0'
COVER_SIZE = 512
