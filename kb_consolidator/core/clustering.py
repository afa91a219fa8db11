"""Greedy grouping of near-duplicate records."""

import logging
from typing import List, Optional, Sequence

from kb_consolidator.config.models import Group, Record, RunStatistics
from kb_consolidator.core.similarity import SimilarityMatcher

logger = logging.getLogger(__name__)


class ClusterBuilder:
    """
    Partitions a record sequence into duplicate groups.

    Each unassigned record seeds a group and pulls in every later unassigned
    record similar to the seed. Members are compared with the seed only, so
    the grouping is not transitively closed: with A~B, B~C and A!~C, seeding
    at A leaves C in a group of its own.
    """

    PROGRESS_INTERVAL = 100

    def __init__(self, matcher: SimilarityMatcher):
        self.matcher = matcher

    def build(
        self,
        records: Sequence[Record],
        stats: Optional[RunStatistics] = None
    ) -> List[Group]:
        """
        Group the records.

        Args:
            records: Records in read order
            stats: Optional run statistics to update with duplicate counts

        Returns:
            List[Group]: Groups in seed discovery order
        """
        logger.info("Finding duplicate and near-duplicate entries...")

        total = len(records)
        assigned = [False] * total
        groups: List[Group] = []

        for i in range(total):
            if assigned[i]:
                continue

            seed = records[i]
            members = [i]
            assigned[i] = True

            for j in range(i + 1, total):
                if assigned[j]:
                    continue
                if self.matcher.are_similar(seed, records[j]):
                    members.append(j)
                    assigned[j] = True

            group = Group(indices=tuple(members))
            groups.append(group)

            if stats is not None and group.is_duplicate:
                if group.size == 2:
                    stats.duplicate_pairs += 1
                else:
                    stats.near_duplicate_groups += 1

            if i % self.PROGRESS_INTERVAL == 0:
                progress = round(i / total * 100, 1)
                logger.debug(f"Progress: {progress}% ({i}/{total})")

        self._check_partition(groups, total)

        duplicate_count = sum(1 for group in groups if group.is_duplicate)
        logger.info(f"Found {duplicate_count} groups with duplicates/near-duplicates")
        return groups

    @staticmethod
    def _check_partition(groups: Sequence[Group], total: int) -> None:
        """Every index must belong to exactly one group."""
        seen = [index for group in groups for index in group.indices]
        if len(seen) != total or set(seen) != set(range(total)):
            raise RuntimeError(
                f"Grouping is not a partition of {total} records "
                f"({len(seen)} memberships, {len(set(seen))} distinct)"
            )
