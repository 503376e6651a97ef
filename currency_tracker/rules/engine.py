"""
Rate-drop alert evaluation.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from currency_tracker.data.currencies import parse_threshold, validate_pair
from currency_tracker.data.fetcher import RateSample, RateSource
from currency_tracker.database.models import RateDropAlertRule
from currency_tracker.database.repository import AlertRuleRepository
from currency_tracker.exceptions import RateSourceError
from currency_tracker.notifiers.scheduler import NotificationSink

logger = logging.getLogger(__name__)

THRESHOLD_TITLE = "🎯 Threshold Alert Triggered!"


def format_rate(base: str, target: str, rate: Decimal) -> str:
    """Human readable rate (e.g., "1 USD = 139.50 JPY")."""
    return f"1 {base} = {rate:.2f} {target}"


@dataclass
class EvaluationResult:
    """Outcome of checking one rule against the current rate."""

    rule: RateDropAlertRule
    current_rate: Optional[RateSample]
    fired: bool
    notification_id: Optional[str] = None


class AlertEvaluator:
    """Persists rate-drop rules and fires notifications when they trip."""

    def __init__(
        self,
        rules: AlertRuleRepository,
        source: RateSource,
        sink: NotificationSink,
        notify_delay_seconds: float = 5.0,
    ):
        """
        Initialize evaluator.

        Args:
            rules: Persisted rule collection
            source: Rate source for current rates
            sink: Where triggered notifications are scheduled
            notify_delay_seconds: Delay before a triggered alert is shown
        """
        self.rules = rules
        self.source = source
        self.sink = sink
        self.notify_delay_seconds = notify_delay_seconds

    @staticmethod
    def build_rule(base: str, target: str, threshold: Any) -> RateDropAlertRule:
        """
        Validate input and build a rule.

        Raises:
            ValidationError: If the pair or threshold is invalid
        """
        base, target = validate_pair(base, target)
        return RateDropAlertRule(base=base, target=target, threshold=parse_threshold(threshold))

    async def evaluate(self, base: str, target: str, threshold: Any) -> EvaluationResult:
        """
        Save the rule and check it against the current rate.

        The rule is persisted before the fetch, so it survives a failed fetch.

        Args:
            base: Base currency code
            target: Target currency code
            threshold: Fire when the rate is strictly below this value

        Returns:
            EvaluationResult with the fetched rate and whether it fired

        Raises:
            ValidationError: If the input is invalid; nothing is saved or fetched
        """
        rule = self.build_rule(base, target, threshold)
        if self.rules.add(rule):
            logger.info(f"Saved alert rule {rule.base}/{rule.target} < {rule.threshold}")
        return await self.check(rule)

    async def check(self, rule: RateDropAlertRule) -> EvaluationResult:
        """Check an existing rule without persisting it."""
        try:
            sample = await self.source.get_latest(rule.base, rule.target)
        except RateSourceError as e:
            logger.warning(f"Could not check {rule.base}/{rule.target}: {e}")
            return EvaluationResult(rule=rule, current_rate=None, fired=False)

        if sample.rate >= rule.threshold:
            return EvaluationResult(rule=rule, current_rate=sample, fired=False)

        notification_id = str(uuid.uuid4())
        self.sink.schedule_once(
            notification_id,
            THRESHOLD_TITLE,
            format_rate(rule.base, rule.target, sample.rate),
            self.notify_delay_seconds,
        )
        logger.info(
            f"{rule.base}/{rule.target} at {sample.rate} is below {rule.threshold}, "
            f"notification {notification_id} scheduled"
        )
        return EvaluationResult(
            rule=rule, current_rate=sample, fired=True, notification_id=notification_id
        )

    async def check_all(self) -> list[EvaluationResult]:
        """Check every persisted rule concurrently."""
        rules = self.rules.list_all()
        return list(await asyncio.gather(*(self._check_isolated(rule) for rule in rules)))

    async def _check_isolated(self, rule: RateDropAlertRule) -> EvaluationResult:
        """Check one rule without letting its failure affect the others."""
        try:
            return await self.check(rule)
        except Exception as e:
            logger.error(f"Error checking {rule.base}/{rule.target} < {rule.threshold}: {e}")
            return EvaluationResult(rule=rule, current_rate=None, fired=False)

    def delete(self, base: str, target: str, threshold: Any) -> bool:
        """Delete a rule matched on base, target and threshold."""
        return self.rules.remove(self.build_rule(base, target, threshold))
