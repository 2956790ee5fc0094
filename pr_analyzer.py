"""
Pull request velocity analysis pipeline.

This module ties acquisition to the analytics engine: it fetches merged and
open PR populations through the GitHub client and runs every velocity,
trend and risk component over them to produce one report.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from github_client import GitHubClient, GitHubAPIError
from pr_record import PRRecord
from risk_analyzer import RiskAnalyzer
from trend_analyzer import TrendAnalyzer
from velocity_analyzer import VelocityAnalyzer, PRAnalysisError, EmptySampleError


NO_DATA = {'status': 'no_data'}


class PRAnalyzer:
    """
    Orchestrates PR data collection and velocity analysis.

    Fetching needs a GitHubClient; analyze() works on any PR records and
    does no I/O.
    """

    def __init__(self, github_client: Optional[GitHubClient] = None):
        """
        Initialize PR analyzer.

        Args:
            github_client: GitHubClient instance used by the fetch methods

        Raises:
            PRAnalysisError: If github_client is not a GitHubClient
        """
        if github_client is not None and not isinstance(github_client, GitHubClient):
            raise PRAnalysisError("Invalid GitHubClient instance provided")

        self.github_client = github_client
        self.velocity_analyzer = VelocityAnalyzer()
        self.trend_analyzer = TrendAnalyzer()
        self.risk_analyzer = RiskAnalyzer()
        self.logger = logging.getLogger(__name__)

    def fetch_merged_prs(self, owner: str, repo: str, limit: int = 100) -> List[PRRecord]:
        """
        Fetch the most recently created merged PRs.

        Raises:
            PRAnalysisError: If arguments are invalid or fetching fails unexpectedly
            GitHubAPIError: If GitHub API requests fail
        """
        return [pr for pr in self._fetch(owner, repo, 'MERGED', limit) if pr.is_merged]

    def fetch_open_prs(self, owner: str, repo: str, limit: int = 100) -> List[PRRecord]:
        """
        Fetch the most recently updated open PRs.

        Raises:
            PRAnalysisError: If arguments are invalid or fetching fails unexpectedly
            GitHubAPIError: If GitHub API requests fail
        """
        return [pr for pr in self._fetch(owner, repo, 'OPEN', limit) if not pr.is_merged]

    def _fetch(self, owner: str, repo: str, state: str, limit: int) -> List[PRRecord]:
        if self.github_client is None:
            raise PRAnalysisError("GitHubClient is required to fetch PRs")

        if not owner or not repo:
            raise PRAnalysisError("Repository owner and name are required")

        if limit < 1:
            raise PRAnalysisError("limit must be at least 1")

        try:
            return self.github_client.fetch_pull_requests(owner, repo, state, limit)
        except GitHubAPIError:
            # Re-raise GitHub API errors without wrapping
            raise
        except Exception as e:
            raise PRAnalysisError(f"Failed to fetch {state.lower()} PRs: {e}")

    def analyze(self, merged_prs: Sequence[PRRecord], open_prs: Sequence[PRRecord],
                now: datetime, exclude_outliers: bool = False) -> Dict[str, Any]:
        """
        Run every analysis component and collect the results in one report.

        The outlier filter, when enabled, is applied once and its output feeds
        every merged-PR component. Risk detectors always see the raw open PRs.

        Args:
            merged_prs: Merged PR records
            open_prs: Open PR records
            now: Reference time for the risk detectors
            exclude_outliers: Trim the fastest and slowest 5% of merged PRs first

        Returns:
            Report dictionary with one entry per analysis section; sections that
            need data and got none hold {'status': 'no_data'}
        """
        sample = list(merged_prs)
        if exclude_outliers:
            sample = self.velocity_analyzer.filter_outliers(sample)

        self.logger.info(f"Analyzing {len(sample)} merged PRs and {len(open_prs)} open PRs")

        monthly_trends = self.trend_analyzer.calculate_monthly_trends(sample)

        report = {
            'sample': {
                'merged_prs': len(merged_prs),
                'open_prs': len(open_prs),
                'analyzed_prs': len(sample),
                'outliers_excluded': len(merged_prs) - len(sample),
            },
            'general_stats': self._guard(self.velocity_analyzer.calculate_general_stats, sample),
            'review_efficiency': self.velocity_analyzer.calculate_review_efficiency(sample),
            'size_correlation': self._guard(self.velocity_analyzer.analyze_size_correlation, sample),
            'hotspots': self.trend_analyzer.find_hotspots(sample),
            'long_tail': self.trend_analyzer.find_long_tail_authors(sample),
            'monthly_trends': monthly_trends,
            'forecast': self.trend_analyzer.forecast(monthly_trends),
            'histogram': self._guard(self.velocity_analyzer.build_histogram, sample),
            'heroes': self.risk_analyzer.detect_heroes(open_prs),
            'stale_prs': self.risk_analyzer.detect_stale_prs(open_prs, now),
            'ghost_reviewers': self.risk_analyzer.detect_ghost_reviewers(open_prs, now),
        }

        self.logger.info("Analysis complete")
        return report

    def _guard(self, component: Callable[[Sequence[PRRecord]], Dict[str, Any]],
               sample: Sequence[PRRecord]) -> Dict[str, Any]:
        """Run a component, substituting a no-data marker for an empty sample."""
        try:
            return component(sample)
        except EmptySampleError as e:
            self.logger.debug(f"No data for {component.__name__}: {e}")
            return dict(NO_DATA)
