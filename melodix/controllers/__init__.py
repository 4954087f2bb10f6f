"""
Melodix controllers - Wiring between session state and playback.
"""
from .player import PlayerController

__all__ = ['PlayerController']
