"""Humanish chat relay between a player and a volunteer."""
from flask import Blueprint, jsonify, request

from src.api.services import request_json, services
from utils.error_handler import GameRuleError

broker_bp = Blueprint("broker", __name__, url_prefix="/api")


@broker_bp.post("/chat-broker")
def chat_broker():
    """Body: {action: join|send|poll, sessionId, message?, userType?, lastMessageId?}"""
    data = request_json()
    result = services().broker.handle(
        data.get("action"),
        data.get("sessionId"),
        message=data.get("message"),
        user_type=data.get("userType"),
        last_message_id=data.get("lastMessageId"),
    )
    return jsonify(result)


@broker_bp.get("/chat-broker")
def chat_broker_poll():
    session_id = request.args.get("sessionId")
    if not session_id:
        raise GameRuleError("Session ID required")
    result = services().broker.poll(session_id, request.args.get("lastMessageId"),
                                    request.args.get("userType"))
    return jsonify(result)
