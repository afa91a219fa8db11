"""Budgeted, rate-limited execution of service-assisted merges."""

import logging
import time
import warnings
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import regex as re

from kb_consolidator.config.models import (
    AIProvider,
    ConsolidatedRecord,
    Group,
    Record,
    RunContext
)
from kb_consolidator.core.backends import MergeBackend
from kb_consolidator.core.errors import BudgetExceededWarning, MergeError
from kb_consolidator.core.merger import RuleBasedMerge, ServiceAssistedMerge

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"[\p{L}'-]+")


class CostEstimator:
    """Rough monetary cost of an exchange, from word counts."""

    TOKENS_PER_WORD = 1.3

    # (input, output) USD per token
    RATES: Dict[str, Dict[str, Tuple[float, float]]] = {
        AIProvider.OPENAI.value: {
            'gpt-4': (0.03 / 1000, 0.06 / 1000),
            'gpt-3.5-turbo': (0.001 / 1000, 0.002 / 1000),
        },
        AIProvider.ANTHROPIC.value: {},
    }
    DEFAULT_RATES: Dict[str, Tuple[float, float]] = {
        AIProvider.OPENAI.value: (0.03 / 1000, 0.06 / 1000),
        AIProvider.ANTHROPIC.value: (0.015 / 1000, 0.075 / 1000),
    }

    def __init__(self, provider: str, model: str):
        self.provider = provider
        self.model = model
        self.input_rate, self.output_rate = self.RATES.get(provider, {}).get(
            model, self.DEFAULT_RATES.get(provider, (0.0, 0.0))
        )

    @classmethod
    def estimate_tokens(cls, text: str) -> float:
        return len(WORD_PATTERN.findall(text or '')) * cls.TOKENS_PER_WORD

    def estimate(self, prompt: str, response: str) -> float:
        """
        Estimate the cost of one prompt/response exchange.

        Args:
            prompt: Text sent to the backend
            response: Text returned by the backend

        Returns:
            float: Estimated cost in USD
        """
        return (
            self.estimate_tokens(prompt) * self.input_rate +
            self.estimate_tokens(response) * self.output_rate
        )


class ServiceOrchestrator:
    """
    Runs service-assisted merges for the duplicate groups of a run.

    Calls are sequential with a fixed delay between them and capped by the
    configured budget. A failed call falls back to the rule-based merge for
    that group only.
    """

    def __init__(
        self,
        backend: MergeBackend,
        context: RunContext,
        fallback: Optional[RuleBasedMerge] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the orchestrator.

        Args:
            backend: Backend selected for the run
            context: Run context receiving statistics
            fallback: Strategy used when a service merge fails
            sleep: Delay function (replaced in tests)
        """
        self.context = context
        self.config = context.config
        self.backend = backend
        self.cost_estimator = CostEstimator(backend.provider, backend.model)
        self.strategy = ServiceAssistedMerge(
            backend,
            self.config.columns,
            on_exchange=self._account_exchange
        )
        self.fallback = fallback or RuleBasedMerge(self.config.columns)
        self.sleep = sleep

    def _account_exchange(self, prompt: str, response: str) -> None:
        self.context.stats.estimated_cost += self.cost_estimator.estimate(prompt, response)

    def _budget_exhausted(self) -> bool:
        return self.context.stats.api_calls >= self.config.max_ai_calls

    def merge_group(self, records: Sequence[Record]) -> ConsolidatedRecord:
        """
        Merge one group through the backend, falling back on failure.

        Args:
            records: Group members in ascending record order

        Returns:
            ConsolidatedRecord: Service-merged or rule-merged record
        """
        stats = self.context.stats
        if stats.api_calls > 0 and self.config.request_delay > 0:
            self.sleep(self.config.request_delay)

        stats.api_calls += 1
        try:
            merged = self.strategy.merge(records)
        except MergeError as e:
            logger.warning(f"AI merge failed for group, using basic merge: {e}")
            stats.fallback_merges += 1
            return self.fallback.merge(records)

        stats.ai_merged += 1
        return merged

    def consolidate(
        self,
        records: Sequence[Record],
        groups: Sequence[Group]
    ) -> List[ConsolidatedRecord]:
        """
        Consolidate all groups of a run.

        Duplicate groups come first in discovery order, followed by the
        singleton groups. When the call budget runs out, the remaining
        duplicate groups are dropped unless fallback_on_budget_exhausted is
        set, in which case they are rule-merged.

        Args:
            records: All records of the run
            groups: Partition of the records

        Returns:
            List[ConsolidatedRecord]: Consolidated records, unsorted
        """
        stats = self.context.stats
        duplicate_groups = [group for group in groups if group.is_duplicate]
        total = len(duplicate_groups)
        logger.info(f"Processing {total} duplicate groups with AI")

        consolidated: List[ConsolidatedRecord] = []
        for position, group in enumerate(duplicate_groups):
            if self._budget_exhausted():
                self._handle_exhausted_budget(records, duplicate_groups[position:], consolidated)
                break

            members = [records[index] for index in group.indices]
            consolidated.append(self.merge_group(members))

            progress = round((position + 1) / total * 100, 1)
            logger.debug(f"AI Progress: {progress}% ({position + 1}/{total})")

        for group in groups:
            if not group.is_duplicate:
                consolidated.append(ConsolidatedRecord.passthrough(records[group.seed]))

        return consolidated

    def _handle_exhausted_budget(
        self,
        records: Sequence[Record],
        remaining: Sequence[Group],
        consolidated: List[ConsolidatedRecord]
    ) -> None:
        message = f"Reached max AI calls limit ({self.config.max_ai_calls})"
        logger.warning(message)
        warnings.warn(message, BudgetExceededWarning, stacklevel=3)

        stats = self.context.stats
        if self.config.fallback_on_budget_exhausted:
            logger.info(f"Merging {len(remaining)} remaining groups with basic merge")
            for group in remaining:
                consolidated.append(
                    self.fallback.merge([records[index] for index in group.indices])
                )
                stats.fallback_merges += 1
        else:
            stats.groups_dropped += len(remaining)
            logger.warning(
                f"{len(remaining)} duplicate groups were not merged and are "
                f"omitted from the output"
            )
