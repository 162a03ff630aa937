"""
Roast Studio: live roast show backend and viewer playback client
"""

__version__ = "1.0.0"
