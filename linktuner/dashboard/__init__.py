"""
LinkTuner Service Package

FastAPI JSON and WebSocket surface for driving frequency sweeps.
"""

from .app import create_app

__all__ = ["create_app"]
