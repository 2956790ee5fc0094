"""
Grouping and trend analysis for merged pull requests.

This module groups merged PRs by top-level directory (hotspots), by author
within the slowest decile (long tail), and by calendar month (trends), and
projects the monthly averages forward with a 3-month moving average.
"""

import logging
from collections import Counter, OrderedDict
from datetime import timezone
from typing import Any, Dict, List, Sequence

from pr_record import PRRecord


TOP_N = 5
FORECAST_WINDOW = 3


class TrendAnalyzer:
    """
    Group-by-then-rank aggregations over a sample of merged PRs.

    Groups are accumulated in first-seen order and ranked with an explicit
    tie-break on the group key, so identical input always yields identical
    output.
    """

    def __init__(self, top_n: int = TOP_N):
        """
        Initialize the trend analyzer.

        Args:
            top_n: Number of ranked entries reported by hotspot and long tail analysis
        """
        self.top_n = top_n
        self.logger = logging.getLogger(__name__)

    def find_hotspots(self, prs: Sequence[PRRecord]) -> List[Dict[str, Any]]:
        """
        Rank top-level directories by average time to merge.

        A PR counts once per directory no matter how many of its files live
        there. PRs without file paths contribute to no directory.

        Args:
            prs: Merged PR records

        Returns:
            Up to top_n dictionaries with 'group', 'avg_merge_hours' and
            'pr_count', slowest first
        """
        totals = OrderedDict()

        for pr in prs:
            hours = pr.merge_hours()
            for group in pr.top_level_groups():
                total, count = totals.get(group, (0.0, 0))
                totals[group] = (total + hours, count + 1)

        hotspots = [
            {'group': group, 'avg_merge_hours': total / count, 'pr_count': count}
            for group, (total, count) in totals.items()
        ]
        hotspots.sort(key=lambda h: (-h['avg_merge_hours'], h['group']))

        self.logger.debug(f"Found {len(hotspots)} directory groups across {len(prs)} PRs")
        return hotspots[:self.top_n]

    def find_long_tail_authors(self, prs: Sequence[PRRecord]) -> Dict[str, Any]:
        """
        Count how often each author appears among the slowest 10% of merges.

        The slow decile holds max(1, n // 10) PRs.

        Args:
            prs: Merged PR records

        Returns:
            Dictionary with 'slow_decile_size' and 'authors', a list of up to
            top_n {'author', 'slow_pr_count'} entries
        """
        if not prs:
            return {'slow_decile_size': 0, 'authors': []}

        slowest_first = sorted(prs, key=lambda pr: pr.merge_duration(), reverse=True)
        limit = max(1, len(prs) // 10)
        slow_decile = slowest_first[:limit]

        author_counts = Counter(pr.author for pr in slow_decile)
        ranked = sorted(author_counts.items(), key=lambda item: (-item[1], item[0]))

        return {
            'slow_decile_size': limit,
            'authors': [
                {'author': author, 'slow_pr_count': count}
                for author, count in ranked[:self.top_n]
            ],
        }

    def calculate_monthly_trends(self, prs: Sequence[PRRecord]) -> List[Dict[str, Any]]:
        """
        Average time to merge per calendar month of the merge date (UTC).

        Each month after the first is marked 'improving', 'degrading' or
        'flat' relative to the month before it.

        Args:
            prs: Merged PR records

        Returns:
            List of {'month', 'avg_merge_hours', 'pr_count', 'trend'} in
            chronological order
        """
        totals = {}
        for pr in prs:
            month = pr.merged_at.astimezone(timezone.utc).strftime('%Y-%m')
            total, count = totals.get(month, (0.0, 0))
            totals[month] = (total + pr.merge_hours(), count + 1)

        trends = []
        previous_avg = None
        for month in sorted(totals):
            total, count = totals[month]
            avg = total / count

            trend = None
            if previous_avg is not None:
                if avg < previous_avg:
                    trend = 'improving'
                elif avg > previous_avg:
                    trend = 'degrading'
                else:
                    trend = 'flat'

            trends.append({'month': month, 'avg_merge_hours': avg, 'pr_count': count, 'trend': trend})
            previous_avg = avg

        self.logger.debug(f"Calculated trends for {len(trends)} months")
        return trends

    def forecast(self, monthly_trends: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Project next month's average time to merge from the last three months.

        The forecast is the unweighted mean of the last three monthly
        averages. The trend compares the last month with the first of the
        three against a threshold of 10% of the first.

        Args:
            monthly_trends: Output of calculate_monthly_trends()

        Returns:
            Dictionary with 'status' 'insufficient_data' and
            'months_available', or 'status' 'ok' with 'basis',
            'forecast_hours', 'diff_hours', 'threshold_hours' and 'trend'
            ('slowing_down', 'speeding_up' or 'stable')
        """
        if len(monthly_trends) < FORECAST_WINDOW:
            self.logger.info(f"Only {len(monthly_trends)} months of data, skipping forecast")
            return {'status': 'insufficient_data', 'months_available': len(monthly_trends)}

        basis = list(monthly_trends[-FORECAST_WINDOW:])
        averages = [month['avg_merge_hours'] for month in basis]

        first = averages[0]
        last = averages[-1]
        diff = last - first
        threshold = first / 10

        if diff > threshold:
            trend = 'slowing_down'
        elif diff < -threshold:
            trend = 'speeding_up'
        else:
            trend = 'stable'

        return {
            'status': 'ok',
            'basis': [{'month': m['month'], 'avg_merge_hours': m['avg_merge_hours']} for m in basis],
            'forecast_hours': sum(averages) / FORECAST_WINDOW,
            'diff_hours': diff,
            'threshold_hours': threshold,
            'trend': trend,
        }
