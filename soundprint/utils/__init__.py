"""Utility modules for Soundprint."""
