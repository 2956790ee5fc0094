"""
Pull request record model for PR velocity analysis.

This module defines the immutable record consumed by the analytics engine
and the helpers used by the acquisition layer to build records from
GitHub GraphQL pull request nodes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser


ROOT_FILES_GROUP = "(root files)"

logger = logging.getLogger(__name__)


class PRRecordError(Exception):
    """Custom exception for malformed or misused PR records."""
    pass


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp from the GitHub API.

    Naive timestamps are assumed to be UTC.

    Args:
        value: Timestamp string, or None

    Returns:
        Timezone-aware datetime, or None if value is empty

    Raises:
        PRRecordError: If the value cannot be parsed
    """
    if not value:
        return None

    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, TypeError) as e:
        raise PRRecordError(f"Invalid timestamp {value!r}: {e}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def _clamp(delta: timedelta) -> timedelta:
    return max(delta, timedelta(0))


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


@dataclass(frozen=True)
class PRRecord:
    """A single pull request as seen by the analytics engine."""
    number: int
    created_at: datetime
    updated_at: datetime
    author: str
    merged_at: Optional[datetime] = None
    first_review_at: Optional[datetime] = None
    size: int = 0
    file_paths: Tuple[str, ...] = ()
    reviewers: FrozenSet[str] = field(default_factory=frozenset)
    requested_reviewers: FrozenSet[str] = field(default_factory=frozenset)
    title: str = ""

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    def merge_duration(self) -> timedelta:
        """
        Time from creation to merge, clamped to zero.

        Raises:
            PRRecordError: If the PR has not been merged
        """
        if self.merged_at is None:
            raise PRRecordError(f"PR #{self.number} has not been merged")
        return _clamp(self.merged_at - self.created_at)

    def merge_hours(self) -> float:
        return _hours(self.merge_duration())

    def triage_wait(self) -> Optional[timedelta]:
        """Time from creation to the first review, or None without a review."""
        if self.first_review_at is None:
            return None
        return _clamp(self.first_review_at - self.created_at)

    def review_duration(self) -> Optional[timedelta]:
        """Time from the first review to merge, or None without a review."""
        if self.first_review_at is None or self.merged_at is None:
            return None
        return _clamp(self.merged_at - self.first_review_at)

    def top_level_groups(self) -> Tuple[str, ...]:
        """
        Distinct top-level path segments touched by this PR, in first-seen order.

        Files at the repository root map to ROOT_FILES_GROUP.
        """
        groups = []
        for path in self.file_paths:
            if '/' in path:
                group = path.split('/', 1)[0]
            else:
                group = ROOT_FILES_GROUP
            if group not in groups:
                groups.append(group)
        return tuple(groups)

    @classmethod
    def from_graphql_node(cls, node: Dict[str, Any]) -> 'PRRecord':
        """
        Build a record from a GitHub GraphQL pull request node.

        Args:
            node: Pull request node as returned by the GraphQL API

        Returns:
            PRRecord instance

        Raises:
            PRRecordError: If required fields are missing or malformed
        """
        if not isinstance(node, dict):
            raise PRRecordError(f"PR node must be a dictionary, got {type(node).__name__}")

        number = node.get('number')
        if not number:
            raise PRRecordError("PR node missing number field")

        created_at = parse_timestamp(node.get('createdAt'))
        if created_at is None:
            raise PRRecordError(f"PR #{number} missing createdAt field")

        updated_at = parse_timestamp(node.get('updatedAt')) or created_at
        merged_at = parse_timestamp(node.get('mergedAt'))

        # Deleted accounts come back as a null author
        author = (node.get('author') or {}).get('login') or ''

        review_nodes = (node.get('reviews') or {}).get('nodes') or []
        review_times = []
        reviewers = set()
        for review in review_nodes:
            if not isinstance(review, dict):
                continue
            review_time = parse_timestamp(review.get('createdAt'))
            if review_time is not None:
                review_times.append(review_time)
            login = (review.get('author') or {}).get('login')
            if login and login != author:
                reviewers.add(login)

        requested = set()
        request_nodes = (node.get('reviewRequests') or {}).get('nodes') or []
        for request in request_nodes:
            login = ((request or {}).get('requestedReviewer') or {}).get('login')
            if login:
                requested.add(login)

        file_nodes = (node.get('files') or {}).get('nodes') or []
        file_paths = tuple(f['path'] for f in file_nodes if isinstance(f, dict) and f.get('path'))

        try:
            size = int(node.get('additions') or 0) + int(node.get('deletions') or 0)
        except (ValueError, TypeError) as e:
            raise PRRecordError(f"PR #{number} has non-numeric size fields: {e}")

        return cls(
            number=int(number),
            created_at=created_at,
            updated_at=updated_at,
            author=author,
            merged_at=merged_at,
            first_review_at=min(review_times) if review_times else None,
            size=size,
            file_paths=file_paths,
            reviewers=frozenset(reviewers),
            requested_reviewers=frozenset(requested),
            title=node.get('title') or '',
        )


def split_populations(records: Iterable[PRRecord]) -> Tuple[List[PRRecord], List[PRRecord]]:
    """
    Partition records into merged and open populations.

    Returns:
        Tuple of (merged_prs, open_prs)
    """
    merged, still_open = [], []
    for record in records:
        if record.is_merged:
            merged.append(record)
        else:
            still_open.append(record)

    logger.debug(f"Split {len(merged) + len(still_open)} records into "
                 f"{len(merged)} merged and {len(still_open)} open")
    return merged, still_open
