"""Mixtape - group playlist matching and sync."""

__version__ = "0.1.0"

from mixtape.app import Mixtape
from mixtape.config import MixtapeConfig
from mixtape.models import CanonicalSong, Platform

__all__ = ["Mixtape", "MixtapeConfig", "CanonicalSong", "Platform"]
