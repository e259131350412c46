"""
ReelVault - Video Library Organizer

Scans a directory for video files, looks each one up in a metadata
catalogue and organizes it into a per-title folder with a description
file and cover artwork.
"""

__version__ = "0.1.0"
__author__ = "ReelVault Team"

__all__ = ["__version__"]
