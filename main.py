#!/usr/bin/env python3
"""
AI Mela - Main Entry Point

Usage:
    python main.py serve                    # Start the HTTP API (default 0.0.0.0:8000)
    python main.py serve --port 5000 --debug
    python main.py status                   # AI provider gateway status
    python main.py leaderboard --limit 10   # Top Stonks holders
    python main.py add-player A1B2 --name "Asha"
    python main.py reset-stonks             # Everyone back to the starting balance

Provider keys come from the environment / .env:
    GEMINI_API_KEY (or GOOGLE_API_KEY), GROQ_API_KEY, GITHUB_TOKEN
"""
import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from loguru import logger


def setup_logging():
    """Configure logging."""
    from config.settings import get_settings
    from src.utils.logger import setup_logger
    settings = get_settings()
    setup_logger(log_dir=settings.log_dir, level=settings.log_level)


def cmd_serve(args):
    """Run the Flask API."""
    from config.settings import get_settings
    from src.api.app import create_app

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port
    app = create_app()
    logger.info(f"Serving AI Mela on http://{host}:{port}")
    app.run(host=host, port=port, debug=args.debug)


def cmd_status(args):
    """Print provider quota / health."""
    from providers.gateway import get_ai_gateway

    gateway = get_ai_gateway()
    if args.output == "json":
        print(json.dumps(gateway.get_provider_status(), indent=2))
    else:
        print(gateway.format_status_report())


def cmd_leaderboard(args):
    from src.games.economy import Economy
    from utils.stonks_db import get_stonks_db

    board = Economy(get_stonks_db()).leaderboard(args.limit)
    if args.output == "json":
        print(json.dumps(board, indent=2))
        return board

    print("=" * 50)
    print("STONKS LEADERBOARD")
    print("=" * 50)
    if not board:
        print("No players yet.")
    for row in board:
        print(f"{row['rank']:>3}. {row['name']:<24} {row['uid']:<10} {row['stonks']:>6}")
    return board


def cmd_add_player(args):
    from utils.stonks_db import get_stonks_db

    player = get_stonks_db().add_player(args.uid, args.name, args.stonks)
    print(f"Added {player['uid']} ({player['name']}) with {player['stonks']} Stonks")
    return player


def cmd_reset_stonks(args):
    from utils.stonks_db import get_stonks_db

    if not args.yes:
        answer = input("Reset EVERY player's balance? [y/N] ").strip().lower()
        if answer != "y":
            print("Aborted.")
            return 0
    count = get_stonks_db().reset_all_stonks(args.stonks)
    print(f"Reset {count} players")
    return count


def main():
    parser = argparse.ArgumentParser(
        description="AI Mela - arcade backend with a Stonks economy and an AI provider gateway"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", type=str, help="Bind address (default: HOST setting)")
    serve_parser.add_argument("--port", "-p", type=int, help="Port (default: PORT setting)")
    serve_parser.add_argument("--debug", action="store_true", help="Flask debug mode")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show AI provider status")
    status_parser.add_argument(
        "--output", "-o",
        choices=["text", "json"],
        default="text",
        help="Output format"
    )

    # Leaderboard command
    board_parser = subparsers.add_parser("leaderboard", help="Show the Stonks leaderboard")
    board_parser.add_argument("--limit", "-n", type=int, default=None, help="Rows to show")
    board_parser.add_argument(
        "--output", "-o",
        choices=["text", "json"],
        default="text",
        help="Output format"
    )

    # Add player command
    add_parser = subparsers.add_parser("add-player", help="Register a player")
    add_parser.add_argument("uid", type=str, help="Player ID (stored upper-case)")
    add_parser.add_argument("--name", type=str, help="Display name")
    add_parser.add_argument("--stonks", type=int, help="Starting balance override")

    # Reset command
    reset_parser = subparsers.add_parser("reset-stonks", help="Reset every balance")
    reset_parser.add_argument("--stonks", type=int, help="Balance to reset to (default: starting balance)")
    reset_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    args = parser.parse_args()

    # Setup logging
    setup_logging()

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "leaderboard":
        cmd_leaderboard(args)
    elif args.command == "add-player":
        cmd_add_player(args)
    elif args.command == "reset-stonks":
        cmd_reset_stonks(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
