"""Configuration and data models for the knowledge base consolidator."""

from dataclasses import dataclass, field, asdict
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple
from enum import Enum
from pathlib import Path


class AIProvider(str, Enum):
    """Supported external merge backends."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class MergeConfidence(str, Enum):
    """Confidence reported by the merge backend for a merged record."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


BASIC_MERGE_METHOD = "basic"


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and endpoint for one merge backend."""
    api_key: str = ''
    model: str = ''
    base_url: str = ''

    @property
    def has_credentials(self) -> bool:
        """False for empty keys and the placeholders of the sample env file."""
        key = self.api_key.strip()
        return bool(key) and not (key.startswith('your_') and key.endswith('_here'))


@dataclass(frozen=True)
class ColumnConfig:
    """Names of the columns the consolidator works on."""
    term: str = 'term'
    definition: str = 'definition'
    url: str = 'url'


@dataclass(frozen=True)
class ConsolidatorConfig:
    """Settings for a single consolidation run."""
    ai_provider: str = AIProvider.OPENAI.value
    similarity_threshold: float = 0.85
    max_ai_calls: int = 100
    enable_ai: bool = True
    fallback_on_budget_exhausted: bool = False
    input_directory: Path = Path('./csv_files')
    output_file: Path = Path('consolidated_knowledge_base.csv')
    stats_file: Optional[Path] = None
    columns: ColumnConfig = field(default_factory=ColumnConfig)
    log_level: str = 'info'
    log_file: Optional[Path] = Path('consolidation.log')
    request_timeout: float = 30.0
    request_delay: float = 0.1
    providers: Mapping[str, ProviderConfig] = field(default_factory=dict)

    def __post_init__(self):
        """Normalize paths and derive the statistics report location."""
        object.__setattr__(self, 'input_directory', Path(self.input_directory))
        object.__setattr__(self, 'output_file', Path(self.output_file))
        object.__setattr__(
            self,
            'stats_file',
            Path(self.stats_file) if self.stats_file
            else self.output_file.with_suffix('.stats.json')
        )
        if self.log_file is not None:
            object.__setattr__(self, 'log_file', Path(self.log_file))
        object.__setattr__(self, 'ai_provider', str(self.ai_provider).strip().lower())

    def provider_config(self) -> ProviderConfig:
        """Return the settings of the configured provider (empty if unknown)."""
        return self.providers.get(self.ai_provider, ProviderConfig())


@dataclass(frozen=True)
class Record:
    """One accepted CSV row and the file it came from."""
    fields: Mapping[str, str]
    source_file: str

    def __post_init__(self):
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))

    def get(self, column: str) -> str:
        return self.fields.get(column, '') or ''


@dataclass(frozen=True)
class Group:
    """Indices of records judged to be duplicates of the seed (first index)."""
    indices: Tuple[int, ...]

    @property
    def seed(self) -> int:
        return self.indices[0]

    @property
    def size(self) -> int:
        return len(self.indices)

    @property
    def is_duplicate(self) -> bool:
        return len(self.indices) > 1


@dataclass(frozen=True)
class ConsolidatedRecord:
    """A record produced by a merge, or a singleton passed through as-is."""
    fields: Mapping[str, str]
    sources_merged: Optional[int] = None
    merge_confidence: Optional[MergeConfidence] = None
    merge_method: Optional[str] = None
    source_files: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))

    @classmethod
    def passthrough(cls, record: Record) -> 'ConsolidatedRecord':
        return cls(fields=record.fields, source_files=(record.source_file,))

    def get(self, column: str) -> str:
        return self.fields.get(column, '') or ''

    def as_row(self) -> Dict[str, str]:
        """Output mapping: field columns, then the merge provenance columns."""
        row = {key: '' if value is None else str(value) for key, value in self.fields.items()}
        if self.sources_merged is not None:
            row['sources_merged'] = str(self.sources_merged)
        if self.merge_confidence is not None:
            row['merge_confidence'] = MergeConfidence(self.merge_confidence).value
        if self.merge_method is not None:
            row['merge_method'] = self.merge_method
        return row


@dataclass
class RunStatistics:
    """Counters collected over one consolidation run."""
    records_read: int = 0
    files_read: int = 0
    duplicate_pairs: int = 0
    near_duplicate_groups: int = 0
    ai_merged: int = 0
    fallback_merges: int = 0
    groups_dropped: int = 0
    final_unique: int = 0
    api_calls: int = 0
    estimated_cost: float = 0.0

    @property
    def duplicate_groups(self) -> int:
        return self.duplicate_pairs + self.near_duplicate_groups

    @property
    def size_reduction(self) -> float:
        """Percentage of input records removed by consolidation."""
        if self.records_read <= 0:
            return 0.0
        return round((self.records_read - self.final_unique) / self.records_read * 100, 1)

    def to_dict(self) -> Dict[str, object]:
        report = asdict(self)
        report['estimated_cost'] = round(self.estimated_cost, 6)
        report['duplicate_groups'] = self.duplicate_groups
        report['size_reduction'] = self.size_reduction
        return report


@dataclass
class RunContext:
    """State of one run, created at start and passed through every stage."""
    config: ConsolidatorConfig
    stats: RunStatistics = field(default_factory=RunStatistics)
