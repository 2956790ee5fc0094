"""
Risk detection for open pull requests.

This module provides detectors that flag delivery risks in the open PR
backlog: reviewer load concentration ("heroes"), inactive PRs ("stale")
and requested reviewers who never responded ("ghosts").
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Sequence

from pr_record import PRRecord


CRITICAL_SHARE = 0.50
HIGH_LOAD_SHARE = 0.30
REPORTING_SHARE = 0.20

STALE_AFTER = timedelta(days=7)
GHOST_AFTER = timedelta(hours=48)


class RiskAnalyzer:
    """
    Detects reviewer bottlenecks and neglected work in open pull requests.

    Every detector takes the open PR population and, where elapsed time
    matters, an explicit reference time.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def detect_heroes(self, open_prs: Sequence[PRRecord]) -> Dict[str, Any]:
        """
        Identify reviewers carrying a disproportionate share of reviews.

        Each reviewer counts once per PR they reviewed. Shares of 50% or more
        are 'critical', 30% or more 'high_load', and above 20% 'healthy';
        reviewers at or below 20% are not reported.

        Args:
            open_prs: Open PR records

        Returns:
            Dictionary containing:
            {
                'status': str,            # 'no_reviews', 'well_distributed' or 'concentrated'
                'total_reviews': int,
                'reviewers': List[Dict],  # reviewer, review_count, share, level
                'gini_coefficient': float
            }
        """
        review_counts = Counter()
        for pr in open_prs:
            review_counts.update(pr.reviewers)

        total_reviews = sum(review_counts.values())
        if total_reviews == 0:
            self.logger.info(f"No reviews found across {len(open_prs)} open PRs")
            return {'status': 'no_reviews', 'total_reviews': 0, 'reviewers': [], 'gini_coefficient': 0.0}

        ranked = sorted(review_counts.items(), key=lambda item: (-item[1], item[0]))

        reported = []
        for reviewer, count in ranked:
            share = count / total_reviews
            level = self.classify_review_share(share)
            if level is None:
                continue
            reported.append({
                'reviewer': reviewer,
                'review_count': count,
                'share': share,
                'level': level,
            })

        gini = self._calculate_gini_coefficient(list(review_counts.values()))

        self.logger.info(
            f"Hero analysis: {len(review_counts)} reviewers, {total_reviews} reviews, "
            f"{len(reported)} above {REPORTING_SHARE:.0%} share"
        )

        return {
            'status': 'concentrated' if reported else 'well_distributed',
            'total_reviews': total_reviews,
            'reviewers': reported,
            'gini_coefficient': round(gini, 3),
        }

    @staticmethod
    def classify_review_share(share: float):
        """Return the load level for a review share, or None below the reporting floor."""
        if share >= CRITICAL_SHARE:
            return 'critical'
        elif share >= HIGH_LOAD_SHARE:
            return 'high_load'
        elif share > REPORTING_SHARE:
            return 'healthy'
        return None

    def detect_stale_prs(self, open_prs: Sequence[PRRecord], now: datetime) -> Dict[str, Any]:
        """
        Find open PRs with no activity for more than 7 days.

        Args:
            open_prs: Open PR records
            now: Reference time for measuring inactivity

        Returns:
            Dictionary with 'status' ('clean' or 'stale_found') and 'stale_prs',
            a list of {'number', 'title', 'author', 'days_inactive'} with the
            longest inactive first
        """
        stale = []
        for pr in open_prs:
            inactive = now - pr.updated_at
            if inactive > STALE_AFTER:
                stale.append({
                    'number': pr.number,
                    'title': pr.title,
                    'author': pr.author,
                    'days_inactive': inactive.days,
                })

        stale.sort(key=lambda s: (-s['days_inactive'], s['number']))

        self.logger.info(f"Stale analysis: {len(stale)} of {len(open_prs)} open PRs inactive for over 7 days")
        return {
            'status': 'stale_found' if stale else 'clean',
            'stale_prs': stale,
        }

    def detect_ghost_reviewers(self, open_prs: Sequence[PRRecord], now: datetime) -> Dict[str, Any]:
        """
        Count pending review requests on PRs open for more than 48 hours.

        A reviewer still in the requested set has not submitted a review yet,
        since submitting one removes them from it.

        Args:
            open_prs: Open PR records
            now: Reference time for measuring PR age

        Returns:
            Dictionary with 'status' ('no_ghosts' or 'ghosts_found') and
            'ghosts', a list of {'reviewer', 'blocked_prs'} ranked by count
        """
        ghost_counts = Counter()
        for pr in open_prs:
            # Requests on fresh PRs are not overdue yet
            if now - pr.created_at <= GHOST_AFTER:
                continue
            ghost_counts.update(pr.requested_reviewers)

        ranked = sorted(ghost_counts.items(), key=lambda item: (-item[1], item[0]))
        ghosts = [{'reviewer': reviewer, 'blocked_prs': count} for reviewer, count in ranked]

        self.logger.info(f"Ghost analysis: {len(ghosts)} reviewers with overdue requests")
        return {
            'status': 'ghosts_found' if ghosts else 'no_ghosts',
            'ghosts': ghosts,
        }

    def _calculate_gini_coefficient(self, values: List[float]) -> float:
        """
        Calculate the Gini coefficient for measuring inequality.

        Returns value between 0 (perfect equality) and 1 (maximum inequality).
        """
        if not values or len(values) == 1:
            return 0.0

        sorted_values = sorted(values)
        n = len(sorted_values)

        # G = (2 * sum(i * x_i)) / (n * sum(x_i)) - (n + 1) / n
        total_sum = sum(sorted_values)
        if total_sum == 0:
            return 0.0

        weighted_sum = sum((i + 1) * value for i, value in enumerate(sorted_values))
        gini = (2 * weighted_sum) / (n * total_sum) - (n + 1) / n

        return max(0.0, min(1.0, gini))
