"""
Reward formulas for every arcade game.

Pure functions of the final score. Amounts come from CONFIG.rewards so they
can be tuned from .env without touching code.
"""
from config.game_config import CONFIG, RewardConfig

# Semantic Clear payout bands: (band upper bound, Stonks per 100 points)
SEMANTIC_TIERS = (
    (500, 2),
    (1000, 4),
    (2000, 6),
    (None, 10),
)


def _per_correct(correct: int, per: int, rounds: int) -> int:
    correct = max(0, min(int(correct), rounds))
    return correct * per


def odd_eve_reward(won: bool, rewards: RewardConfig = CONFIG.rewards) -> int:
    return rewards.odd_eve_win if won else 0


def interrogator_reward(won: bool, rewards: RewardConfig = CONFIG.rewards) -> int:
    return rewards.interrogator_win if won else 0


def headlines_reward(correct: int, rewards: RewardConfig = CONFIG.rewards) -> int:
    return _per_correct(correct, rewards.headlines_per_correct, rewards.headlines_rounds)


def deepfake_reward(correct: int, rewards: RewardConfig = CONFIG.rewards) -> int:
    return _per_correct(correct, rewards.deepfake_per_correct, rewards.deepfake_rounds)


def charades_reward(correct: int, rewards: RewardConfig = CONFIG.rewards) -> int:
    return _per_correct(correct, rewards.charades_per_correct, rewards.charades_rounds)


def scavenger_reward(score: int, rewards: RewardConfig = CONFIG.rewards) -> int:
    """One Stonk per item found, capped."""
    return max(0, min(int(score), rewards.scavenger_cap))


def meme_reward(score: int, rewards: RewardConfig = CONFIG.rewards) -> int:
    """Nothing below the minimum score, then base + per-extra-pose, capped."""
    score = int(score)
    if score < rewards.meme_min_score:
        return 0
    earned = rewards.meme_base + (score - rewards.meme_min_score) * rewards.meme_per_extra
    return min(earned, rewards.meme_cap)


def emoji_crypt_reward(score: int, rewards: RewardConfig = CONFIG.rewards) -> int:
    return max(0, int(score)) // 100 * rewards.emoji_crypt_per_100


def semantic_reward(score: int) -> int:
    """Marginal tiers: each band pays its own rate on the points inside it.

    >>> semantic_reward(700)   # 5*2 + 2*4
    18
    """
    score = max(0, int(score))
    stonks = 0
    lower = 0
    for upper, rate in SEMANTIC_TIERS:
        if score <= lower:
            break
        band_points = score - lower if upper is None else min(score, upper) - lower
        stonks += band_points // 100 * rate
        if upper is None:
            break
        lower = upper
    return stonks


# Game key -> formula taking the client-reported score / correct count
SCORE_FORMULAS = {
    "headlines": headlines_reward,
    "deepfake": deepfake_reward,
    "charades": charades_reward,
    "scavenger": scavenger_reward,
    "meme": meme_reward,
    "emoji_crypt": emoji_crypt_reward,
    "semantics": semantic_reward,
}


def reward_for(game_key: str, score: int) -> int:
    """Payout for a score-settled game. Raises KeyError for games settled elsewhere."""
    return SCORE_FORMULAS[game_key](score)
