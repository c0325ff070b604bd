"""
AI-backed routes: the interrogator, the Humanish bots and the judges.

Provider keys may be overridden per request with the x-google-api-key,
x-groq-api-key and x-github-token headers.
"""
from flask import Blueprint, jsonify, request

from src.api.services import request_json, request_keys, services
from src.games.charades import describe_image
from src.games.scavenger import verify_item
from utils.error_handler import GameRuleError

ai_bp = Blueprint("ai", __name__, url_prefix="/api")


# ============================================
# AI INTERROGATOR
# ============================================

@ai_bp.post("/interrogate")
def interrogate():
    """One guardian turn.

    Body: {messages, playCount?, resetQuotas?, uid?}. With a uid the play
    count comes from the ledger and the per-game message limit is enforced.
    """
    svc = services()
    data = request_json()
    messages = data.get("messages")
    if not isinstance(messages, list):
        raise GameRuleError("Invalid request: messages array required")

    if data.get("resetQuotas"):
        svc.gateway.reset_quotas()

    uid = data.get("uid")
    if uid:
        # The current game's PLAYING row is already logged
        prior_plays = max(0, svc.economy.play_count(uid, "interrogator") - 1)
        result = svc.interrogator.interrogate(messages, play_count=prior_plays,
                                              api_keys=request_keys())
    else:
        result = svc.interrogator.interrogate(messages, play_count=data.get("playCount") or 0,
                                              api_keys=request_keys(),
                                              enforce_attempts=False)
    return jsonify(result)


@ai_bp.get("/interrogate")
def interrogate_status():
    return jsonify(services().interrogator.status())


# ============================================
# HUMANISH
# ============================================

@ai_bp.post("/groq")
def groq_chat():
    data = request_json()
    reply = services().bot.groq_reply(data.get("messages"), api_keys=request_keys())
    return jsonify({"reply": reply})


@ai_bp.post("/gemini-chat")
def gemini_chat():
    data = request_json()
    return jsonify(services().bot.gemini_reply(data.get("messages"), api_keys=request_keys()))


# ============================================
# VISION JUDGES
# ============================================

@ai_bp.post("/analyze-charade-image")
def analyze_charade_image():
    data = request_json()
    prompt = describe_image(services().gateway, data.get("imageUrl"), api_keys=request_keys())
    return jsonify({"prompt": prompt})


@ai_bp.post("/verify-scavenger-item")
def verify_scavenger_item():
    data = request_json()
    result = verify_item(services().gateway, data.get("image"), data.get("target"),
                         api_keys=request_keys())
    return jsonify(result)


@ai_bp.post("/scribble/analyze")
def scribble_analyze():
    data = request_json()
    image = data.get("image")
    if not image:
        raise GameRuleError("image is required")
    guess = services().scribble.analyze_drawing(image, data.get("targetWord") or "",
                                                api_keys=request_keys())
    return jsonify(guess.to_dict())


# ============================================
# GENERATORS
# ============================================

@ai_bp.post("/emoji-crypt/clue")
def emoji_crypt_clue():
    data = request_json()
    clue = services().emoji_crypt.generate(data.get("category"), data.get("difficulty"),
                                           api_keys=request_keys())
    return jsonify(clue.to_dict())


@ai_bp.post("/headlines/generate")
def headlines_generate():
    data = request_json()
    headline_set = services().headlines.generate(data.get("realHeadline"),
                                                 api_keys=request_keys())
    return jsonify(headline_set.to_dict())


@ai_bp.post("/semantics/similarity")
def semantics_similarity():
    """Body: {word, candidates: [...]} -> similarity per candidate plus the best match."""
    data = request_json()
    candidates = data.get("candidates")
    if isinstance(candidates, str):
        candidates = [candidates]
    if not isinstance(candidates, list):
        raise GameRuleError("candidates must be a list of words")

    sims = services().similarity.similarities(data.get("word"), candidates,
                                              api_keys=request_keys())
    best = max(sims, key=sims.get)
    return jsonify({
        "similarities": sims,
        "bestMatch": best,
        "similarity": sims[best],
    })
