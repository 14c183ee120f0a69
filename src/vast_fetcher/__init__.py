"""Fetch VAST ad-tag documents with URL filters, lifecycle events and bitrate tracking."""

from .workflows import *  # noqa: F401,F403
from .workflows import __all__

__version__ = "0.1.0"
