"""
studiobook - slot-based booking scheduler and consistency engine for a photo studio.
"""

__version__ = "0.1.0"
