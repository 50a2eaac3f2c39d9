"""Vigil — local security posture audit with signed reports."""

__version__ = "0.1.0"
