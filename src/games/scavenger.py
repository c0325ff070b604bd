"""
Emoji Scavenger Hunt - find the real-world object shown as an emoji.

The webcam snapshot is sent to Gemini with a strict YES/NO question.
"""
import random
import re
from typing import Dict, Mapping, Optional

from providers.gateway import AIGateway
from utils.error_handler import GameRuleError

ITEMS = (
    {"emoji": "👓", "label": "Sunglasses"},
    {"emoji": "🖊️", "label": "Pen"},
    {"emoji": "💻", "label": "Laptop"},
    {"emoji": "📱", "label": "Phone"},
    {"emoji": "🎧", "label": "Headphones"},
    {"emoji": "🥤", "label": "Cup"},
    {"emoji": "⌚", "label": "Watch"},
    {"emoji": "🔑", "label": "Keys"},
    {"emoji": "🖱️", "label": "Computer Mouse"},
    {"emoji": "🪑", "label": "Chair"},
    {"emoji": "🎒", "label": "Backpack"},
    {"emoji": "👟", "label": "Shoe"},
    {"emoji": "📕", "label": "Book"},
    {"emoji": "🥄", "label": "Spoon"},
    {"emoji": "⌨️", "label": "Keyboard"},
    {"emoji": "🧴", "label": "Bottle"},
    {"emoji": "🧢", "label": "Hat"},
    {"emoji": "✂️", "label": "Scissors"},
    {"emoji": "🪙", "label": "Coin"},
    {"emoji": "🖥️", "label": "Monitor"},
)

_IMAGE_PREFIX = re.compile(r"^data:image/(png|jpeg|webp);base64,")


def random_item(rng: Optional[random.Random] = None) -> Dict[str, str]:
    return dict((rng or random).choice(ITEMS))


def verify_prompt(target: str) -> str:
    return (f"Is this image showing a {target}? Answer strictly with YES or NO. "
            f"If it is unclear or unrelated, answer NO.")


def verify_item(gateway: AIGateway, image: str, target: str,
                api_keys: Optional[Mapping[str, str]] = None) -> Dict:
    """Returns {"match": bool, "debug": upper-cased model answer}.

    Webcam frames are JPEG; the data URL header is normalised to that.
    """
    if not image or not target:
        raise GameRuleError("Missing image or target")
    payload = "data:image/jpeg;base64," + _IMAGE_PREFIX.sub("", image)
    result = gateway.analyze_image("gemini", verify_prompt(target), payload,
                                   api_keys=api_keys, temperature=0.0, max_tokens=10)
    text = result.content.strip().upper()
    return {"match": "YES" in text, "debug": text}
