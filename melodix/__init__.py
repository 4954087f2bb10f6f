"""
Melodix - Local music player core: crossfading playback engine,
persistent queue, smart playlists, search and timed lyrics.
"""
__version__ = '1.0.0'
