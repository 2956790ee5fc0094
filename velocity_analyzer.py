"""
Merge velocity statistics for pull request samples.

This module provides the statistical core of the analysis: outlier
trimming, descriptive statistics of time-to-merge, review phase
decomposition, size/speed correlation and the merge time histogram.
All methods are pure functions of the sample passed in.
"""

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Sequence

from pr_record import PRRecord


HOUR = 1.0
DAY = 24 * HOUR
WEEK = 7 * DAY
MONTH = 30 * DAY

MICROSECOND = timedelta(microseconds=1)

HISTOGRAM_BUCKETS = [
    ('< 1h', HOUR),
    ('1h - 1d', DAY),
    ('1d - 1w', WEEK),
    ('1w - 30d', MONTH),
    ('>= 30d', math.inf),
]
HISTOGRAM_SCALE = 20

STRONG_CORRELATION = 0.5
MODERATE_CORRELATION = 0.3


class PRAnalysisError(Exception):
    """Custom exception for PR analysis related errors."""
    pass


class EmptySampleError(PRAnalysisError):
    """Raised when a statistic needing at least one PR gets an empty sample."""
    pass


class VelocityAnalyzer:
    """
    Calculates merge velocity statistics over a sample of merged PRs.

    The analyzer keeps no state between calls and never reorders the
    sequences it is given; every sort happens on a private copy.
    """

    def __init__(self, outlier_fraction: float = 0.05):
        """
        Initialize the velocity analyzer.

        Args:
            outlier_fraction: Fraction of the sample trimmed from each tail
                              by filter_outliers()
        """
        self.outlier_fraction = outlier_fraction
        self.logger = logging.getLogger(__name__)

    def filter_outliers(self, prs: Sequence[PRRecord]) -> List[PRRecord]:
        """
        Remove the fastest and slowest PRs by merge duration.

        Samples smaller than 4 are returned unchanged. Otherwise at least one
        PR is trimmed from each tail.

        Args:
            prs: Merged PR records

        Returns:
            New list of retained PRs, sorted by merge duration ascending
        """
        if len(prs) < 4:
            self.logger.debug(f"Sample of {len(prs)} PRs too small for outlier filtering")
            return list(prs)

        ordered = sorted(prs, key=lambda pr: pr.merge_duration())
        cut = int(len(ordered) * self.outlier_fraction)
        if cut == 0:
            cut = 1

        trimmed = ordered[cut:len(ordered) - cut]
        self.logger.info(f"Outlier filtering reduced sample from {len(prs)} to {len(trimmed)} PRs")
        return trimmed

    def calculate_general_stats(self, prs: Sequence[PRRecord]) -> Dict[str, Any]:
        """
        Calculate count, mean, median, min and max time to merge.

        Args:
            prs: Merged PR records

        Returns:
            Dictionary with 'count', 'mean_hours', 'median_hours',
            'min_hours' and 'max_hours'

        Raises:
            EmptySampleError: If prs is empty
        """
        if not prs:
            raise EmptySampleError("General statistics require at least one merged PR")

        durations = sorted(pr.merge_hours() for pr in prs)
        count = len(durations)
        mid = count // 2

        if count % 2 == 0:
            median = (durations[mid - 1] + durations[mid]) / 2
        else:
            median = durations[mid]

        stats = {
            'count': count,
            'mean_hours': sum(durations) / count,
            'median_hours': median,
            'min_hours': durations[0],
            'max_hours': durations[-1],
        }

        self.logger.debug(f"General stats over {count} PRs: mean {stats['mean_hours']:.2f}h, "
                          f"median {median:.2f}h")
        return stats

    def calculate_review_efficiency(self, prs: Sequence[PRRecord]) -> Dict[str, Any]:
        """
        Split merge time into triage wait and active review for reviewed PRs.

        PRs without a review are left out of both averages rather than
        counted as zero.

        Args:
            prs: Merged PR records

        Returns:
            Dictionary with 'status' ('ok' or 'no_reviews'), 'reviewed_prs',
            'total_prs', 'avg_wait_hours' and 'avg_review_hours'
        """
        wait_hours = []
        review_hours = []

        for pr in prs:
            wait = pr.triage_wait()
            review = pr.review_duration()
            if wait is None or review is None:
                continue
            wait_hours.append(wait.total_seconds() / 3600)
            review_hours.append(review.total_seconds() / 3600)

        result = {
            'status': 'ok',
            'reviewed_prs': len(wait_hours),
            'total_prs': len(prs),
            'avg_wait_hours': None,
            'avg_review_hours': None,
        }

        if not wait_hours:
            self.logger.info(f"No reviews found among {len(prs)} PRs")
            result['status'] = 'no_reviews'
            return result

        result['avg_wait_hours'] = sum(wait_hours) / len(wait_hours)
        result['avg_review_hours'] = sum(review_hours) / len(review_hours)
        return result

    def analyze_size_correlation(self, prs: Sequence[PRRecord]) -> Dict[str, Any]:
        """
        Pearson correlation between PR size and hours to merge.

        A zero denominator (constant size or constant duration) yields a
        coefficient of exactly 0.

        Args:
            prs: Merged PR records

        Returns:
            Dictionary with 'sample_size', 'coefficient' and 'verdict'
            ('strong_positive', 'moderate' or 'weak')

        Raises:
            EmptySampleError: If prs is empty
        """
        if not prs:
            raise EmptySampleError("Size correlation requires at least one merged PR")

        # Integer microseconds keep the sums exact, so zero variance is exactly zero
        n = len(prs)
        sum_x = sum_y = sum_xy = sum_x2 = sum_y2 = 0

        for pr in prs:
            x = int(pr.size)
            y = pr.merge_duration() // MICROSECOND
            sum_x += x
            sum_y += y
            sum_xy += x * y
            sum_x2 += x * x
            sum_y2 += y * y

        numerator = n * sum_xy - sum_x * sum_y
        variance_x = n * sum_x2 - sum_x * sum_x
        variance_y = n * sum_y2 - sum_y * sum_y

        coefficient = 0.0
        if variance_x > 0 and variance_y > 0:
            denominator = math.sqrt(variance_x) * math.sqrt(variance_y)
            coefficient = max(-1.0, min(1.0, numerator / denominator))

        return {
            'sample_size': len(prs),
            'coefficient': coefficient,
            'verdict': self.classify_correlation(coefficient),
        }

    @staticmethod
    def classify_correlation(coefficient: float) -> str:
        """Map a correlation coefficient to its verdict; negative r counts as weak."""
        if coefficient > STRONG_CORRELATION:
            return 'strong_positive'
        elif coefficient > MODERATE_CORRELATION:
            return 'moderate'
        return 'weak'

    def build_histogram(self, prs: Sequence[PRRecord]) -> Dict[str, Any]:
        """
        Count merged PRs per fixed merge-time bucket.

        Bucket upper bounds are exclusive and the first matching bucket wins.

        Args:
            prs: Merged PR records

        Returns:
            Dictionary with 'buckets' (label, upper_bound_hours, count,
            bar_length), 'max_count' and 'scale'

        Raises:
            EmptySampleError: If prs is empty
        """
        if not prs:
            raise EmptySampleError("Histogram requires at least one merged PR")

        counts = [0] * len(HISTOGRAM_BUCKETS)
        for pr in prs:
            hours = pr.merge_hours()
            for i, (_, upper_bound) in enumerate(HISTOGRAM_BUCKETS):
                if hours < upper_bound:
                    counts[i] += 1
                    break

        max_count = max(counts)
        buckets = []
        for (label, upper_bound), count in zip(HISTOGRAM_BUCKETS, counts):
            buckets.append({
                'label': label,
                'upper_bound_hours': upper_bound,
                'count': count,
                'bar_length': (count * HISTOGRAM_SCALE) // max_count if max_count else 0,
            })

        return {
            'buckets': buckets,
            'max_count': max_count,
            'scale': HISTOGRAM_SCALE,
        }
