"""
Clip export service: edit spec -> FFmpeg filter graph -> bounded render.
"""

__version__ = "1.0.0"
