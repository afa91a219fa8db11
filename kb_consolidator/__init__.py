"""
Knowledge Base Consolidator
===========================

Consolidates several CSV extracts of term/definition/url records into one
deduplicated knowledge base.

Key Features:
- Edit-distance similarity on term or definition with a configurable threshold
- Greedy seed-based grouping of near-duplicates
- Rule-based merging, or merging through an OpenAI or Anthropic style backend
- Call budget, rate limiting and cost estimation for backend calls
- Per-group fallback to rule-based merging when the backend fails
- Sorted CSV output and a JSON statistics report
"""

from kb_consolidator.core.consolidator import KnowledgeBaseConsolidator

from kb_consolidator.config.models import (
    ColumnConfig,
    ConsolidatedRecord,
    ConsolidatorConfig,
    ProviderConfig,
    Record,
    RunStatistics
)
from kb_consolidator.config.settings import load_config
from kb_consolidator.core.similarity import similarity

__version__ = "1.0.0"
