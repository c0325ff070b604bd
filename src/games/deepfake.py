"""
Deepfake Detective - pick the AI-generated image out of a real/fake pair.
"""
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from utils.error_handler import GameRuleError

SIDES = ("left", "right")


@dataclass
class DeepfakeRound:
    pair_id: Any
    left_image: str
    right_image: str
    left_is_fake: bool

    def public(self) -> Dict[str, Any]:
        return {"pairId": self.pair_id, "leftImage": self.left_image,
                "rightImage": self.right_image}

    def check(self, answer: Any) -> bool:
        side = str(answer or "").lower()
        if side not in SIDES:
            raise GameRuleError("Pick 'left' or 'right'")
        return (side == "left") == self.left_is_fake

    @property
    def answer(self) -> str:
        return "left" if self.left_is_fake else "right"


def make_rounds(pairs: List[Dict], rounds: int,
                rng: Optional[random.Random] = None) -> List[DeepfakeRound]:
    """Draw `rounds` distinct pairs and put the fake on a random side."""
    rng = rng or random.Random()
    if len(pairs) < rounds:
        raise GameRuleError(f"Need {rounds} image pairs, only {len(pairs)} available")
    result = []
    for pair in rng.sample(pairs, rounds):
        left_is_fake = rng.random() < 0.5
        result.append(DeepfakeRound(
            pair_id=pair["id"],
            left_image=pair["fakeImage"] if left_is_fake else pair["realImage"],
            right_image=pair["realImage"] if left_is_fake else pair["fakeImage"],
            left_is_fake=left_is_fake,
        ))
    return result
