"""
Melodix managers - Stateful session components.
"""
from .queue import QueueManager

__all__ = ['QueueManager']
