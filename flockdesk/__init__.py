"""Flockdesk - course content ordering and learner progression for the church admin console."""

__version__ = "0.1.0"
