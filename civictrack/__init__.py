"""
CivicTrack - issue lifecycle and community moderation engine.
"""

__version__ = "0.1.0"
