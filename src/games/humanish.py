"""
Humanish - chat for 90 seconds, then guess: human or AI?

Two bot personas:
- Groq: terse lowercase texter that denies being an AI
- Gemini: Hinglish-speaking netizen, falling back to the Groq persona

Messages arrive in the chat UI shape {"sender": "me" | "partner" | "system",
"text": str} and are mapped to chat roles here. The Groq route also serves
the charades option generator, selected by a system message.
HumanishManager runs a whole round: partner draw, relay, failover and guess.
"""
import random
import time
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from providers.gateway import AIGateway
from src.games.sessions import SessionStore
from utils.error_handler import GameRuleError, MelaException, AllProvidersFailedError

HUMAN_PERSONA = (
    "Act like a normal human being and explicitly deny being an AI. Make the user "
    "think you are not AI. Use lowercase, text-speak (u, r, idk), and occasional "
    "typos. Be slightly chaotic. Keep responses under 15 words."
)

CHARADES_PERSONA = (
    "You are a helpful assistant that generates image description options for a "
    "charades game. Always respond with valid JSON arrays of exactly 3 strings."
)

HINGLISH_PERSONA = """vibe: you're just a random person from india hanging out online.
low effort: don't use caps. don't use full stops at the end of msgs.
language: hinglish. mix it naturally.don't translate hindi to english, just use it like "sahi hai", "vibe toh hai", "chal chor".
personality:
- if the reply is in english not reply in hindi
- you're not an assistant. if asked for help, be slightly lazy.
- never use bold(**), bullet points, or numbered lists.it's a dead giveaway.
- if someone asks if you're ai, just say something like "kya bol raha hai lol" or "haan bhai sab robot hi toh hain". be dismissive.
- use "yaar", "bhai", "context?", "sun", "matlab" to sound real.
- if a question is too long, just reply to one part of it."""

DEFAULT_REPLY = "idk lol"
OPENING_LINE = "hey whats up lol"
AFK_LINE = "sorry was afk lol"
PARTNER_TYPES = ("human", "ai")
CHAT_SECONDS = 90


def validate_chat(messages: Any) -> List[Dict[str, str]]:
    if not isinstance(messages, list) or not messages:
        raise GameRuleError("Messages array is required")
    for msg in messages:
        if not isinstance(msg, dict) or not isinstance(msg.get("text"), str):
            raise GameRuleError("Each message needs a text field")
    return messages


def is_charades_request(messages: List[Dict[str, str]]) -> bool:
    return any(m.get("sender") == "system" and "charades game" in (m.get("text") or "")
               for m in messages)


def to_chat_roles(messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
    mapped = []
    for m in messages:
        sender = m.get("sender")
        role = "system" if sender == "system" else "user" if sender == "me" else "assistant"
        mapped.append({"role": role, "content": m.get("text", "")})
    return mapped


def pick_partner(rng: Optional[random.Random] = None) -> str:
    """Coin flip: does the player get a volunteer or the bot?"""
    return "human" if (rng or random).random() > 0.5 else "ai"


def check_guess(guess: str, partner_type: str) -> bool:
    guess = str(guess or "").lower()
    if guess not in PARTNER_TYPES:
        raise GameRuleError("Guess must be 'human' or 'ai'")
    return guess == partner_type


class HumanishBot:
    def __init__(self, gateway: AIGateway):
        self.gateway = gateway

    def groq_reply(self, messages: Any,
                   api_keys: Optional[Mapping[str, str]] = None) -> str:
        messages = validate_chat(messages)
        charades = is_charades_request(messages)
        chat = [{"role": "system", "content": CHARADES_PERSONA if charades else HUMAN_PERSONA}]
        chat.extend(to_chat_roles(messages))
        result = self.gateway.generate_with(
            "groq", chat, api_keys=api_keys,
            temperature=0.8 if charades else 0.9,
            max_tokens=200 if charades else 50,
        )
        return result.content or DEFAULT_REPLY

    def gemini_reply(self, messages: Any,
                     api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Hinglish persona on Gemini; Groq persona when Gemini fails."""
        messages = validate_chat(messages)
        chat = [{"role": "system", "content": HINGLISH_PERSONA}]
        chat.extend(
            {"role": "user" if m.get("sender") == "me" else "assistant", "content": m["text"]}
            for m in messages
        )
        try:
            result = self.gateway.generate_with("gemini", chat, api_keys=api_keys,
                                                temperature=0.9, max_tokens=100)
            return {"reply": result.content, "provider": "gemini"}
        except MelaException as e:
            logger.warning(f"Gemini chat failed, falling back to Groq: {e}")

        try:
            return {"reply": self.groq_reply(messages, api_keys), "provider": "groq"}
        except MelaException as e:
            logger.error(f"Groq fallback failed: {e}")
            raise AllProvidersFailedError(
                "Failed to get AI response (Gemini & Groq failed)", e
            ) from e


# ============================================
# SERVER-RUN CHAT
# ============================================

@dataclass
class HumanishChat:
    uid: str
    partner: str                      # what the player must guess
    session_id: Optional[str] = None  # chat-broker session when a volunteer is on
    chat_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    bot_active: bool = False
    messages: List[Dict[str, str]] = field(default_factory=list)


class HumanishManager:
    """Pairs the player with a volunteer or the bot and judges the guess.

    The partner is drawn on the server and only revealed by guess(). A
    volunteer who leaves the player waiting past the failover window is
    replaced by the bot, which apologises with AFK_LINE; the partner the
    player has to guess stays "human".
    """

    def __init__(self, bot: HumanishBot, broker=None, economy=None,
                 rng_factory=random.Random, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.bot = bot
        self.broker = broker
        self._economy = economy
        self._rng_factory = rng_factory
        self._chats: SessionStore[HumanishChat] = SessionStore(
            "humanish chat", ttl_seconds=ttl_seconds, clock=clock)
        self._lock = Lock()

    def start(self, uid: str, session_code: Optional[str] = None,
              api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Without a session code (or a broker) no volunteer can join, so it is the bot."""
        uid = str(uid or "").strip().upper()
        if not uid:
            raise GameRuleError("uid is required")
        if session_code is not None and not isinstance(session_code, str):
            raise GameRuleError("sessionCode must be text")
        partner = pick_partner(self._rng_factory())
        if not session_code or self.broker is None:
            partner = "ai"
        if self._economy is not None:
            self._economy.enter(uid, "humanish")

        chat = HumanishChat(uid=uid, partner=partner)
        opening = None
        if partner == "human":
            chat.session_id = f"session_{session_code}"
            self.broker.join(chat.session_id, "player")
        else:
            chat.bot_active = True
            opening = self._bot_line(chat, OPENING_LINE, api_keys)
        self._chats.add(chat.chat_id, chat)
        logger.info(f"Humanish chat {chat.chat_id} started for {uid}")
        return {"chatId": chat.chat_id, "sessionId": chat.session_id, "opening": opening,
                "chatSeconds": CHAT_SECONDS}

    def _bot_line(self, chat: HumanishChat, prompt: str,
                  api_keys: Optional[Mapping[str, str]]) -> str:
        """Ask the bot to answer `prompt`; the prompt itself is the reply if that fails."""
        try:
            reply = self.bot.groq_reply(chat.messages + [{"sender": "me", "text": prompt}],
                                        api_keys=api_keys)
        except MelaException as e:
            logger.warning(f"Humanish bot unavailable, using canned line: {e}")
            reply = prompt
        chat.messages.append({"sender": "partner", "text": reply})
        return reply

    def message(self, chat_id: str, text: Any,
                api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Bot chats answer at once; volunteer chats are relayed through the broker."""
        if not isinstance(text, str) or not text.strip():
            raise GameRuleError("message is required")
        chat = self._chats.get(chat_id)
        with self._lock:
            chat.messages.append({"sender": "me", "text": text.strip()})
            bot_active = chat.bot_active
        if not bot_active:
            self.broker.send(chat.session_id, "player", text.strip())
            return {"reply": None, "relayed": True}
        reply = self.bot.groq_reply(chat.messages, api_keys=api_keys)
        with self._lock:
            chat.messages.append({"sender": "partner", "text": reply})
        return {"reply": reply, "relayed": False}

    def failover(self, chat_id: str,
                 api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """Hand a silent volunteer chat to the bot once the broker reports failover."""
        chat = self._chats.get(chat_id)
        if chat.bot_active:
            raise GameRuleError("The bot is already chatting")
        polled = self.broker.poll(chat.session_id)
        if not polled["failover"]:
            raise GameRuleError("Volunteer is still within the reply window")
        with self._lock:
            chat.bot_active = True
            chat.messages = [
                {"sender": "me" if m["sender"] == "player" else "partner", "text": m["text"]}
                for m in polled["messages"]
            ]
        logger.info(f"Humanish chat {chat_id}: volunteer silent, bot took over")
        return {"reply": self._bot_line(chat, AFK_LINE, api_keys)}

    def guess(self, chat_id: str, guess: Any) -> Dict[str, Any]:
        chat = self._chats.get(chat_id)
        correct = check_guess(guess, chat.partner)
        if self._chats.pop(chat_id) is None:
            raise GameRuleError(f"Unknown humanish chat: {chat_id}")
        outcome = {"correct": correct, "partner": chat.partner,
                   "botTookOver": chat.partner == "human" and chat.bot_active}
        if self._economy is not None:
            settled = self._economy.settle(chat.uid, "humanish", 0,
                                           "WIN" if correct else "LOSS")
            outcome["stonks"] = settled["stonks"]
        return outcome

    def active_count(self) -> int:
        return len(self._chats)
