"""Players, balances, leaderboard and the player portal."""
from flask import Blueprint, jsonify, request

from src.api.services import request_json, services
from utils.error_handler import GameRuleError

players_bp = Blueprint("players", __name__, url_prefix="/api")


def _int_field(data, name, required=True):
    value = data.get(name)
    if value is None:
        if required:
            raise GameRuleError(f"{name} is required")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise GameRuleError(f"{name} must be an integer")


@players_bp.post("/players")
def add_player():
    data = request_json()
    uid = data.get("uid")
    if not uid:
        raise GameRuleError("uid is required")
    player = services().db.add_player(uid, data.get("name"),
                                      _int_field(data, "stonks", required=False))
    return jsonify(player), 201


@players_bp.get("/players")
def list_players():
    return jsonify({"players": services().db.list_players()})


@players_bp.get("/players/<uid>")
def get_player(uid):
    return jsonify(services().db.require_player(uid))


@players_bp.delete("/players/<uid>")
def delete_player(uid):
    services().db.delete_player(uid)
    return jsonify({"success": True, "uid": uid.strip().upper()})


@players_bp.put("/players/<uid>/stonks")
def set_stonks(uid):
    """Admin override of a balance (logged as an adjustment)."""
    amount = _int_field(request_json(), "stonks")
    return jsonify(services().db.set_stonks(uid, amount))


@players_bp.post("/players/reset-stonks")
def reset_stonks():
    amount = _int_field(request_json(), "stonks", required=False)
    count = services().db.reset_all_stonks(amount)
    return jsonify({"success": True, "playersReset": count})


@players_bp.get("/leaderboard")
def leaderboard():
    limit = request.args.get("limit", type=int)
    return jsonify({"leaderboard": services().economy.leaderboard(limit)})


@players_bp.get("/portal/<uid>")
def portal(uid):
    return jsonify(services().economy.portal(uid))
