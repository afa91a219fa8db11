"""Main knowledge base consolidation pipeline."""

import logging
import time
from typing import Callable, List, Optional

import httpx

from kb_consolidator.config.models import (
    ConsolidatedRecord,
    ConsolidatorConfig,
    Group,
    Record,
    RunContext,
    RunStatistics
)
from kb_consolidator.core.backends import MergeBackend, create_backend
from kb_consolidator.core.clustering import ClusterBuilder
from kb_consolidator.core.errors import ConsolidatorError
from kb_consolidator.core.ingestor import RecordIngestor
from kb_consolidator.core.merger import RuleBasedMerge
from kb_consolidator.core.orchestrator import ServiceOrchestrator
from kb_consolidator.core.similarity import SimilarityMatcher
from kb_consolidator.core.writer import OutputWriter

logger = logging.getLogger(__name__)

SEPARATOR = '=' * 60


class KnowledgeBaseConsolidator:
    """
    Consolidates a directory of CSV extracts into one knowledge base.

    A run reads every record, groups near-duplicates, merges each group
    (through the configured backend or by rules), writes the sorted result
    and returns the run statistics.
    """

    def __init__(
        self,
        config: ConsolidatorConfig,
        backend: Optional[MergeBackend] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the consolidator.

        Args:
            config: Run configuration
            backend: Merge backend to use instead of the configured one
            transport: Optional httpx transport for the configured backend
            sleep: Delay function between external calls
        """
        self.config = config
        self.backend = backend
        self.transport = transport
        self.sleep = sleep

        columns = config.columns
        self.ingestor = RecordIngestor(term_column=columns.term)
        self.cluster_builder = ClusterBuilder(
            SimilarityMatcher(columns, threshold=config.similarity_threshold)
        )
        self.rule_merge = RuleBasedMerge(columns)
        self.writer = OutputWriter(term_column=columns.term)

    def consolidate(self) -> RunStatistics:
        """
        Run the full pipeline.

        Returns:
            RunStatistics: Counters of the finished run

        Raises:
            ConfigurationError: If the merge backend cannot be set up
            NoInputError: If there are no CSV files to read
            OutputError: If the result cannot be written
        """
        context = RunContext(config=self.config)
        start_time = time.time()

        logger.info("Starting CSV consolidation...")
        if self.config.enable_ai:
            logger.info(f"AI Provider: {self.config.ai_provider.upper()}")
        else:
            logger.info("AI consolidation disabled")
        logger.info(f"Similarity Threshold: {self.config.similarity_threshold}")

        try:
            orchestrator = self._create_orchestrator(context)

            records = self.ingestor.load_directory(self.config.input_directory, context.stats)
            groups = self.cluster_builder.build(records, context.stats)

            if orchestrator is not None:
                logger.info("Using AI to consolidate duplicate groups...")
                consolidated = orchestrator.consolidate(records, groups)
            else:
                consolidated = self.basic_consolidate(records, groups)

            self.writer.write(consolidated, self.config.output_file, context.stats)
            self.writer.write_statistics(context.stats, self.config.stats_file)
        except ConsolidatorError as e:
            logger.error(f"Error during consolidation: {e}")
            raise

        self._log_final_stats(context.stats)
        logger.info(f"Consolidation completed in {time.time() - start_time:.2f} seconds")
        return context.stats

    def _create_orchestrator(self, context: RunContext) -> Optional[ServiceOrchestrator]:
        """Select the backend up front so configuration errors abort early."""
        if not self.config.enable_ai:
            return None

        backend = self.backend or create_backend(self.config, transport=self.transport)
        return ServiceOrchestrator(
            backend,
            context,
            fallback=self.rule_merge,
            sleep=self.sleep
        )

    def basic_consolidate(
        self,
        records: List[Record],
        groups: List[Group]
    ) -> List[ConsolidatedRecord]:
        """
        Merge every group with the rule-based strategy, in group order.

        Args:
            records: All records of the run
            groups: Partition of the records

        Returns:
            List[ConsolidatedRecord]: Consolidated records, unsorted
        """
        logger.info("Using basic consolidation (AI disabled)")
        return [
            self.rule_merge.merge([records[index] for index in group.indices])
            for group in groups
        ]

    def _log_final_stats(self, stats: RunStatistics) -> None:
        logger.info(SEPARATOR)
        logger.info("CONSOLIDATION COMPLETE - FINAL STATISTICS")
        logger.info(SEPARATOR)
        logger.info(f"Original Records: {stats.records_read:,}")
        logger.info(f"Duplicate Pairs Found: {stats.duplicate_pairs:,}")
        logger.info(f"Near-Duplicate Groups: {stats.near_duplicate_groups:,}")
        logger.info(f"Duplicate Groups Total: {stats.duplicate_groups:,}")
        logger.info(f"AI-Merged Records: {stats.ai_merged:,}")
        logger.info(f"Final Unique Records: {stats.final_unique:,}")
        logger.info(f"Size Reduction: {stats.size_reduction}%")

        if self.config.enable_ai:
            logger.info(f"API Calls Made: {stats.api_calls:,}")
            logger.info(f"Estimated Cost: ${stats.estimated_cost:,.4f}")
            if stats.fallback_merges:
                logger.info(f"Basic Merge Fallbacks: {stats.fallback_merges:,}")
            if stats.groups_dropped:
                logger.warning(f"Groups Dropped (AI budget): {stats.groups_dropped:,}")

        logger.info(f"Output File: {self.config.output_file}")
        logger.info(SEPARATOR)
