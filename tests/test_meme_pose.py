"""
Tests for src/games/meme_pose.py - keypoint rules for each meme pose.

Keypoints are built around a neutral stance (shoulders at y=200, wrists
down at y=400) and individual points are moved per test.
"""
import pytest

from src.games.meme_pose import MEMES, POSE_RULES, check_pose, random_meme

MOVENET_NAMES = (
    "nose", "left_eye", "right_eye", "left_ear", "right_ear",
    "left_shoulder", "right_shoulder", "left_elbow", "right_elbow",
    "left_wrist", "right_wrist", "left_hip", "right_hip",
    "left_knee", "right_knee", "left_ankle", "right_ankle",
)

NEUTRAL = {
    "nose": (300, 100),
    "left_eye": (310, 90), "right_eye": (290, 90),
    "left_ear": (320, 95), "right_ear": (280, 95),
    "left_shoulder": (350, 200), "right_shoulder": (250, 200),
    "left_elbow": (360, 300), "right_elbow": (240, 300),
    "left_wrist": (360, 400), "right_wrist": (240, 400),
    "left_hip": (330, 420), "right_hip": (270, 420),
    "left_knee": (330, 550), "right_knee": (270, 550),
    "left_ankle": (330, 680), "right_ankle": (270, 680),
}


def pose(score=0.9, **moved):
    """Full MoveNet keypoint list with some points moved to (x, y)."""
    positions = dict(NEUTRAL, **moved)
    return [{"name": n, "x": positions[n][0], "y": positions[n][1], "score": score}
            for n in MOVENET_NAMES]


POSES = {
    "THINKING": pose(right_wrist=(310, 120)),
    "HAND_STOP": pose(left_wrist=(400, 150)),
    "WAKANDA": pose(left_wrist=(290, 300), right_wrist=(310, 300)),
    "T_POSE": pose(left_wrist=(560, 210), right_wrist=(40, 195)),
    "ARMS_UP": pose(left_wrist=(380, 50), right_wrist=(220, 50)),
}


# ============================================
# POSE RULES
# ============================================

class TestPoses:

    @pytest.mark.parametrize("target", sorted(POSES))
    def test_pose_matches_its_target(self, target):
        assert check_pose(POSES[target], target) is True

    @pytest.mark.parametrize("target", sorted(POSE_RULES))
    def test_neutral_matches_nothing(self, target):
        assert check_pose(pose(), target) is False

    def test_thinking_needs_hand_near_face(self):
        far = pose(right_wrist=(200, 120))
        assert check_pose(far, "THINKING") is False

    def test_wakanda_wrists_too_far_apart(self):
        apart = pose(left_wrist=(270, 300), right_wrist=(330, 300))
        assert check_pose(apart, "WAKANDA") is False

    def test_t_pose_needs_wide_arms(self):
        narrow = pose(left_wrist=(400, 210), right_wrist=(200, 195))
        assert check_pose(narrow, "T_POSE") is False

    def test_arms_up_needs_spread(self):
        together = pose(left_wrist=(310, 50), right_wrist=(290, 50))
        assert check_pose(together, "ARMS_UP") is False


# ============================================
# INPUT GUARDS
# ============================================

class TestGuards:

    def test_low_confidence_wrist(self):
        keypoints = pose(left_wrist=(400, 150))
        for k in keypoints:
            if k["name"] == "left_wrist":
                k["score"] = 0.1
        assert check_pose(keypoints, "HAND_STOP") is False

    def test_low_confidence_everywhere(self):
        assert check_pose(pose(score=0.2, left_wrist=(400, 150)), "HAND_STOP") is False

    def test_too_few_keypoints(self):
        assert check_pose(POSES["ARMS_UP"][:10], "ARMS_UP") is False

    def test_missing_required_point(self):
        keypoints = [k for k in pose(left_wrist=(380, 50), right_wrist=(220, 50))
                     if k["name"] != "nose"]
        assert check_pose(keypoints, "ARMS_UP") is False

    def test_malformed_point(self):
        keypoints = pose(left_wrist=(400, 150))
        del keypoints[9]["x"]
        assert check_pose(keypoints, "HAND_STOP") is False

    @pytest.mark.parametrize("keypoints", [None, "pose", {"nose": 1}])
    def test_not_a_list(self, keypoints):
        assert check_pose(keypoints, "T_POSE") is False

    def test_unknown_target(self):
        assert check_pose(POSES["T_POSE"], "DAB") is False


class TestMemes:

    def test_every_meme_has_a_rule(self):
        assert {m["targetPose"] for m in MEMES} == set(POSE_RULES)

    def test_random_meme_is_a_copy(self):
        meme = random_meme()
        meme["hint"] = "changed"
        assert "changed" not in [m["hint"] for m in MEMES]
