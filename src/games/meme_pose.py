"""
Meme Recreator - hold the pose of the meme on screen.

Keypoints come from a single-person pose estimator (MoveNet naming):
[{"name": "nose", "x": .., "y": .., "score": ..}, ...] in pixel space,
y growing downwards. Each target pose is a small geometric rule over the
nose, shoulders and wrists.
"""
import random
from typing import Any, Dict, Iterable, Mapping, Optional

MIN_CONFIDENCE = 0.3
MIN_KEYPOINTS = 11
REQUIRED_POINTS = ("nose", "left_shoulder", "right_shoulder", "left_wrist", "right_wrist")

MEMES = (
    {"id": "think", "hint": "Think about it...", "targetPose": "THINKING"},
    {"id": "drake_no", "hint": "Nah, I don't like that.", "targetPose": "HAND_STOP"},
    {"id": "wakanda", "hint": "Forever!", "targetPose": "WAKANDA"},
    {"id": "tpose", "hint": "Dominance asserted.", "targetPose": "T_POSE"},
    {"id": "ymca", "hint": "It's fun to stay there.", "targetPose": "ARMS_UP"},
)


def random_meme(rng: Optional[random.Random] = None) -> Dict[str, str]:
    return dict((rng or random).choice(MEMES))


def _index(keypoints: Iterable[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    return {k.get("name"): k for k in keypoints if isinstance(k, Mapping)}


def _thinking(nose, ls, rs, lw, rw) -> bool:
    # A wrist raised close to the face
    reach = abs(rs["x"] - ls["x"]) * 0.5
    left = lw["y"] < ls["y"] and abs(lw["x"] - nose["x"]) < reach and abs(lw["y"] - nose["y"]) < reach
    right = rw["y"] < rs["y"] and abs(rw["x"] - nose["x"]) < reach and abs(rw["y"] - nose["y"]) < reach
    return left or right


def _hand_stop(nose, ls, rs, lw, rw) -> bool:
    return (lw["y"] < ls["y"] and lw["x"] > ls["x"] + 20) or \
           (rw["y"] < rs["y"] and rw["x"] < rs["x"] - 20)


def _wakanda(nose, ls, rs, lw, rw) -> bool:
    # Wrists crossed over the chest
    return abs(lw["x"] - rw["x"]) < 40 and ls["y"] < lw["y"] < ls["y"] + 200


def _t_pose(nose, ls, rs, lw, rw) -> bool:
    arm_span = abs(lw["x"] - rw["x"])
    shoulder_span = abs(ls["x"] - rs["x"])
    return (abs(lw["y"] - ls["y"]) < 30 and abs(rw["y"] - rs["y"]) < 30
            and arm_span > shoulder_span * 2.5)


def _arms_up(nose, ls, rs, lw, rw) -> bool:
    return lw["y"] < nose["y"] and rw["y"] < nose["y"] and abs(lw["x"] - rw["x"]) > 50


POSE_RULES = {
    "THINKING": _thinking,
    "HAND_STOP": _hand_stop,
    "WAKANDA": _wakanda,
    "T_POSE": _t_pose,
    "ARMS_UP": _arms_up,
}


def check_pose(keypoints: Any, target: str) -> bool:
    """True when the keypoints match the target pose.

    Unknown targets, short keypoint lists, missing points and low-confidence
    nose/wrists all count as no match.
    """
    rule = POSE_RULES.get(target)
    if rule is None or not isinstance(keypoints, list) or len(keypoints) < MIN_KEYPOINTS:
        return False
    points = _index(keypoints)
    if any(name not in points for name in REQUIRED_POINTS):
        return False
    nose, ls, rs, lw, rw = (points[name] for name in REQUIRED_POINTS)
    if any((p.get("score") or 0) < MIN_CONFIDENCE for p in (nose, lw, rw)):
        return False
    try:
        return bool(rule(nose, ls, rs, lw, rw))
    except (KeyError, TypeError):
        return False
