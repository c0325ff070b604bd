"""
Dumb Charades - match the picture to its prompt (one right, two decoys).

describe_image() asks Groq vision for a one-line funny prompt, which is how
new dataset entries get their captions.
"""
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from providers.gateway import AIGateway
from utils.error_handler import GameRuleError

DESCRIBE_PROMPT = (
    "Describe this image in one concise sentence. Focus on the main subject, "
    "action, and key absurd or unusual details. Keep it under 20 words and make "
    "it sound like a funny charades prompt."
)
DEFAULT_PROMPT = "An unusual scene"
DECOYS = 2


@dataclass
class CharadesRound:
    entry_id: Any
    image: str
    options: List[str]
    correct_answer: str

    def public(self) -> Dict[str, Any]:
        return {"entryId": self.entry_id, "image": self.image, "options": list(self.options)}

    def check(self, answer: Any) -> bool:
        if answer not in self.options:
            raise GameRuleError("Answer must be one of the options")
        return answer == self.correct_answer

    @property
    def answer(self) -> str:
        return self.correct_answer


def make_round(entries: List[Dict], correct: Dict,
               rng: Optional[random.Random] = None) -> CharadesRound:
    rng = rng or random.Random()
    others = [e for e in entries if e["id"] != correct["id"]]
    if len(others) < DECOYS:
        raise GameRuleError("Not enough charades entries for decoys")
    decoys = rng.sample(others, DECOYS)
    options = [correct["prompt"]] + [d["prompt"] for d in decoys]
    rng.shuffle(options)
    return CharadesRound(entry_id=correct["id"], image=correct["image"],
                         options=options, correct_answer=correct["prompt"])


def make_rounds(entries: List[Dict], rounds: int,
                rng: Optional[random.Random] = None) -> List[CharadesRound]:
    rng = rng or random.Random()
    if len(entries) < max(rounds, DECOYS + 1):
        raise GameRuleError(f"Need {max(rounds, DECOYS + 1)} charades entries, "
                            f"only {len(entries)} available")
    return [make_round(entries, e, rng) for e in rng.sample(entries, rounds)]


def describe_image(gateway: AIGateway, image_url: str,
                   api_keys: Optional[Mapping[str, str]] = None) -> str:
    """One-sentence charades prompt for an image. Provider errors propagate."""
    if not image_url:
        raise GameRuleError("Image URL is required")
    result = gateway.analyze_image("groq", DESCRIBE_PROMPT, image_url,
                                   api_keys=api_keys, temperature=0.7, max_tokens=100)
    return result.content or DEFAULT_PROMPT
