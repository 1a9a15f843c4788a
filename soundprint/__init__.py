"""
Soundprint - Artist Audio-Feature Profiles

Resolves the averaged audio-feature vector of an artist's top tracks from
several feature providers, with live progress for polling UIs.
"""

__version__ = "0.1.0"
__author__ = "Soundprint Team"
