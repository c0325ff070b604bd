"""
Game entry, settlement and the server-run games.

Score-settled games (headlines, scavenger, meme, ...) report a score or
correct count and are paid by the matching reward formula. Odd-Eve, the
picture quizzes, Emoji Crypt, Semantic Clear and Humanish run on the server
and settle themselves.
"""
from flask import Blueprint, jsonify, request

from config.game_config import CONFIG
from src.api.services import request_json, request_keys, services
from src.games.interrogator import max_attempts
from src.games.meme_pose import check_pose, random_meme
from src.games.rewards import SCORE_FORMULAS, interrogator_reward, reward_for
from src.games.scavenger import random_item
from src.games.scribble import random_word
from utils.error_handler import GameRuleError

games_bp = Blueprint("games", __name__, url_prefix="/api")

# Entered and settled by their own managers, never by a client-reported score
SERVER_SETTLED = {"odd_eve", "deepfake", "charades", "emoji_crypt", "semantics", "humanish"}


def _require(data, name):
    value = data.get(name)
    if value in (None, ""):
        raise GameRuleError(f"{name} is required")
    return value


@games_bp.get("/games")
def list_games():
    return jsonify({"games": [
        {"key": entry.key, "title": entry.title, "entryFee": entry.entry_fee}
        for entry in CONFIG.games.values()
    ]})


# ============================================
# ENTRY / SETTLEMENT
# ============================================

@games_bp.post("/games/<game>/enter")
def enter_game(game):
    svc = services()
    uid = _require(request_json(), "uid")
    if game in SERVER_SETTLED:
        raise GameRuleError(f"{game} is started from its own game route")
    extra = {}
    if game == "interrogator":
        # Locked-out players are turned away before paying
        allowed = max_attempts(svc.economy.play_count(uid, game))
        if allowed == 0:
            raise GameRuleError("No interrogation attempts left")
        extra["attempts"] = allowed
    result = svc.economy.enter(uid, game)
    return jsonify({**result, **extra})


@games_bp.post("/games/<game>/settle")
def settle_game(game):
    """Body: {uid, score} or, for the interrogator, {uid, won}."""
    svc = services()
    data = request_json()
    uid = _require(data, "uid")
    if game not in CONFIG.games:
        raise GameRuleError(f"Unknown game: {game}")
    if game in SERVER_SETTLED:
        raise GameRuleError(f"{game} is settled by the server")

    if game == "interrogator":
        won = bool(data.get("won"))
        result = svc.economy.settle(uid, game, interrogator_reward(won),
                                    "WIN" if won else "LOSS")
        return jsonify(result)

    if game not in SCORE_FORMULAS:
        # No payout (scribble): just log the finished game
        return jsonify(svc.economy.settle(uid, game, 0, "COMPLETED"))

    try:
        score = int(data.get("score", 0))
    except (TypeError, ValueError):
        raise GameRuleError("score must be an integer")
    return jsonify(svc.economy.settle(uid, game, reward_for(game, max(0, score))))


# ============================================
# ODD-EVE CRICKET
# ============================================

@games_bp.post("/odd-eve/start")
def odd_eve_start():
    match = services().odd_eve.start(_require(request_json(), "uid"))
    return jsonify(match.snapshot())


@games_bp.post("/odd-eve/toss")
def odd_eve_toss():
    data = request_json()
    return jsonify(services().odd_eve.toss(_require(data, "matchId"),
                                           data.get("call"), data.get("number")))


@games_bp.post("/odd-eve/role")
def odd_eve_role():
    data = request_json()
    return jsonify(services().odd_eve.choose_role(_require(data, "matchId"), data.get("role")))


@games_bp.post("/odd-eve/ball")
def odd_eve_ball():
    data = request_json()
    return jsonify(services().odd_eve.ball(_require(data, "matchId"), data.get("number")))


# ============================================
# PICTURE QUIZZES
# ============================================

@games_bp.post("/quiz/<game>/start")
def quiz_start(game):
    return jsonify(services().quiz.start(_require(request_json(), "uid"), game))


@games_bp.post("/quiz/answer")
def quiz_answer():
    data = request_json()
    return jsonify(services().quiz.answer(_require(data, "sessionId"), data.get("choice")))


# ============================================
# MEME RECREATOR
# ============================================

@games_bp.get("/meme/next")
def meme_next():
    return jsonify(random_meme())


@games_bp.post("/meme/check-pose")
def meme_check_pose():
    """Body: {keypoints: [...], target: "T_POSE"} -> {match}."""
    data = request_json()
    target = _require(data, "target")
    return jsonify({"target": target, "match": check_pose(data.get("keypoints"), target)})


# ============================================
# EMOJI CRYPT
# ============================================

@games_bp.post("/emoji-crypt/start")
def emoji_crypt_start():
    """Body: {uid, category?, difficulty?} -> run state with the first clue."""
    data = request_json()
    return jsonify(services().emoji_runs.start(_require(data, "uid"), data.get("category"),
                                               data.get("difficulty"),
                                               api_keys=request_keys()))


@games_bp.post("/emoji-crypt/next")
def emoji_crypt_next():
    data = request_json()
    return jsonify(services().emoji_runs.next_round(_require(data, "runId"),
                                                    api_keys=request_keys()))


@games_bp.post("/emoji-crypt/guess")
def emoji_crypt_guess():
    data = request_json()
    return jsonify(services().emoji_runs.guess(_require(data, "runId"), data.get("guess")))


@games_bp.post("/emoji-crypt/time-up")
def emoji_crypt_time_up():
    return jsonify(services().emoji_runs.time_up(_require(request_json(), "runId")))


# ============================================
# SEMANTIC CLEAR
# ============================================

@games_bp.post("/semantics/start")
def semantics_start():
    return jsonify(services().semantic_games.start(_require(request_json(), "uid")))


@games_bp.post("/semantics/spawn")
def semantics_spawn():
    return jsonify(services().semantic_games.spawn(_require(request_json(), "gameId")))


@games_bp.post("/semantics/submit")
def semantics_submit():
    data = request_json()
    return jsonify(services().semantic_games.submit(_require(data, "gameId"), data.get("word"),
                                                    api_keys=request_keys()))


@games_bp.post("/semantics/drop")
def semantics_drop():
    data = request_json()
    return jsonify(services().semantic_games.drop(_require(data, "gameId"),
                                                  _require(data, "wordId")))


# ============================================
# HUMANISH
# ============================================

@games_bp.post("/humanish/start")
def humanish_start():
    """Body: {uid, sessionCode?}. Without a code the partner is always the bot."""
    data = request_json()
    return jsonify(services().humanish.start(_require(data, "uid"), data.get("sessionCode"),
                                             api_keys=request_keys()))


@games_bp.post("/humanish/message")
def humanish_message():
    data = request_json()
    return jsonify(services().humanish.message(_require(data, "chatId"), data.get("message"),
                                               api_keys=request_keys()))


@games_bp.post("/humanish/failover")
def humanish_failover():
    return jsonify(services().humanish.failover(_require(request_json(), "chatId"),
                                                api_keys=request_keys()))


@games_bp.post("/humanish/guess")
def humanish_guess():
    data = request_json()
    return jsonify(services().humanish.guess(_require(data, "chatId"), data.get("guess")))


# ============================================
# TARGET PICKERS
# ============================================

@games_bp.get("/scavenger/next")
def scavenger_next():
    return jsonify(random_item())


@games_bp.get("/scribble/word")
def scribble_word():
    category = request.args.get("category")
    return jsonify({"word": random_word(category), "category": category})
