"""
Lesson completion reward.

Reward trigger invoked by the orchestrator once per upward crossing of
the completion threshold:

- first completion of a lesson:  reward_first_completion_coins ("lesson_completion")
- later re-mastery at >= 95:     reward_review_mastery_coins   ("review_mastery")
"""

from __future__ import annotations

from loguru import logger

from atomic_mastery.config import Settings, get_settings
from atomic_mastery.engine.interfaces import CoinWallet, RewardOutcome

REASON_COMPLETION = "lesson_completion"
REASON_REVIEW = "review_mastery"
REASON_ALREADY_CLAIMED = "already_claimed"


class LessonCompletionReward:
    """RewardTrigger that credits coins through a wallet."""

    def __init__(self, wallet: CoinWallet, settings: Settings | None = None):
        self.wallet = wallet
        self.settings = settings or get_settings()

    async def on_mastery_achieved(self, user_id: str, lesson_id: str, final_score: int) -> RewardOutcome:
        claimed_before = await self.wallet.has_reward(user_id, lesson_id, REASON_COMPLETION)

        if not claimed_before:
            coins, reason = self.settings.reward_first_completion_coins, REASON_COMPLETION
        elif final_score >= self.settings.reward_review_min_score:
            coins, reason = self.settings.reward_review_mastery_coins, REASON_REVIEW
        else:
            coins, reason = 0, REASON_ALREADY_CLAIMED

        if coins <= 0:
            return RewardOutcome(reward_granted=False, coins_added=0, reason=reason)

        balance = await self.wallet.credit(
            user_id,
            coins,
            reason,
            {"lesson_id": lesson_id, "score": final_score},
        )
        logger.info("Coins added for {}: {} ({}). New balance: {}", user_id, coins, reason, balance)
        return RewardOutcome(reward_granted=True, coins_added=coins, reason=reason, new_balance=balance)
