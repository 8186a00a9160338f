"""
VoxChat - real-time group chat with live speech transcription.
"""

__version__ = "0.1.0"
