"""
HTTP API - Flask application for the AI Mela arcade

Provides:
- create_app: application factory (blueprints + JSON error handlers)
- MelaServices / build_services: the objects routes work with
"""

from .app import create_app
from .services import MelaServices, build_services

__all__ = [
    'create_app',
    'MelaServices',
    'build_services',
]
