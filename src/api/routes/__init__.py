"""Route blueprints, registered in this order by create_app()."""

from .ai import ai_bp
from .broker import broker_bp
from .games import games_bp
from .players import players_bp

BLUEPRINTS = (ai_bp, broker_bp, games_bp, players_bp)

__all__ = ['BLUEPRINTS', 'ai_bp', 'broker_bp', 'games_bp', 'players_bp']
