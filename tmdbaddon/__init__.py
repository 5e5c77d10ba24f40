"""Installable entry package re-exporting the addon application."""

from __future__ import annotations

from app.main import app, create_app
from app.services.addon import AddonService

__version__ = "1.0.0"

__all__ = ["AddonService", "app", "create_app", "__version__"]
