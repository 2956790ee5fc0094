"""
Unit tests for open PR risk detection.

This module contains tests for the RiskAnalyzer class, covering hero
reviewer concentration, stale PR detection and ghost reviewers.
"""

import unittest
from datetime import datetime, timedelta, timezone

import pytest

from pr_record import PRRecord
from risk_analyzer import RiskAnalyzer


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_open_pr(number, age=timedelta(days=1), inactive=timedelta(0), reviewers=(), requested=(), title=''):
    return PRRecord(
        number=number,
        created_at=NOW - age,
        updated_at=NOW - inactive,
        author='author',
        reviewers=frozenset(reviewers),
        requested_reviewers=frozenset(requested),
        title=title or f'PR {number}',
    )


def reviewed_by(*logins):
    """One open PR per login, each reviewed by that login only."""
    return [make_open_pr(i, reviewers=[login]) for i, login in enumerate(logins, 1)]


class TestHeroDetection(unittest.TestCase):
    """Test cases for reviewer load concentration."""

    def setUp(self):
        """Set up test fixtures."""
        self.analyzer = RiskAnalyzer()

    def test_share_levels(self):
        """Test 50% is critical, 30% is high load and 20% is not reported."""
        prs = reviewed_by(*(['alice'] * 5 + ['bob'] * 3 + ['carol'] * 2))

        result = self.analyzer.detect_heroes(prs)

        self.assertEqual(result['status'], 'concentrated')
        self.assertEqual(result['total_reviews'], 10)
        self.assertEqual(
            [(r['reviewer'], r['level']) for r in result['reviewers']],
            [('alice', 'critical'), ('bob', 'high_load')]
        )
        self.assertEqual(result['reviewers'][0]['review_count'], 5)
        self.assertAlmostEqual(result['reviewers'][0]['share'], 0.5)

    def test_healthy_share_reported(self):
        """Test shares above 20% but below 30% are reported as healthy."""
        prs = reviewed_by('alice', 'alice', 'bob', 'carol')

        result = self.analyzer.detect_heroes(prs)

        levels = {r['reviewer']: r['level'] for r in result['reviewers']}
        self.assertEqual(levels, {'alice': 'critical', 'bob': 'healthy', 'carol': 'healthy'})

    def test_reviewer_counted_once_per_pr(self):
        """Test a reviewer on several PRs is counted per PR."""
        prs = [
            make_open_pr(1, reviewers=['alice', 'bob']),
            make_open_pr(2, reviewers=['alice']),
        ]

        result = self.analyzer.detect_heroes(prs)

        self.assertEqual(result['total_reviews'], 3)
        self.assertEqual(result['reviewers'][0]['reviewer'], 'alice')
        self.assertEqual(result['reviewers'][0]['review_count'], 2)

    def test_well_distributed(self):
        """Test evenly spread reviews produce no reported reviewers."""
        prs = reviewed_by('alice', 'bob', 'carol', 'dave', 'erin')

        result = self.analyzer.detect_heroes(prs)

        self.assertEqual(result['status'], 'well_distributed')
        self.assertEqual(result['reviewers'], [])
        self.assertEqual(result['gini_coefficient'], 0.0)

    def test_no_reviews(self):
        """Test open PRs without reviewers are reported as such."""
        result = self.analyzer.detect_heroes([make_open_pr(1), make_open_pr(2)])

        self.assertEqual(result['status'], 'no_reviews')
        self.assertEqual(result['total_reviews'], 0)
        self.assertEqual(result['reviewers'], [])

    def test_no_open_prs(self):
        """Test an empty backlog has no reviews."""
        self.assertEqual(self.analyzer.detect_heroes([])['status'], 'no_reviews')

    def test_gini_coefficient(self):
        """Test the Gini coefficient of review counts."""
        prs = reviewed_by('alice', 'alice', 'alice', 'bob')

        result = self.analyzer.detect_heroes(prs)

        self.assertAlmostEqual(result['gini_coefficient'], 0.25)

    def test_ties_ordered_by_login(self):
        """Test reviewers with equal counts are ordered alphabetically."""
        prs = reviewed_by('zoe', 'adam')

        result = self.analyzer.detect_heroes(prs)

        self.assertEqual([r['reviewer'] for r in result['reviewers']], ['adam', 'zoe'])


class TestStalePRs(unittest.TestCase):
    """Test cases for inactive PR detection."""

    def setUp(self):
        """Set up test fixtures."""
        self.analyzer = RiskAnalyzer()

    def test_inactive_over_seven_days(self):
        """Test a PR untouched for 8 days is stale."""
        pr = make_open_pr(7, age=timedelta(days=30), inactive=timedelta(days=8), title='Refactor auth')

        result = self.analyzer.detect_stale_prs([pr], NOW)

        self.assertEqual(result['status'], 'stale_found')
        self.assertEqual(result['stale_prs'], [
            {'number': 7, 'title': 'Refactor auth', 'author': 'author', 'days_inactive': 8}
        ])

    def test_exactly_seven_days_not_stale(self):
        """Test the 7-day boundary itself is not stale."""
        pr = make_open_pr(1, age=timedelta(days=30), inactive=timedelta(days=7))

        result = self.analyzer.detect_stale_prs([pr], NOW)

        self.assertEqual(result['status'], 'clean')
        self.assertEqual(result['stale_prs'], [])

    def test_sorted_longest_inactive_first(self):
        """Test stale PRs are ordered by inactivity then number."""
        prs = [
            make_open_pr(3, age=timedelta(days=60), inactive=timedelta(days=8, hours=2)),
            make_open_pr(9, age=timedelta(days=60), inactive=timedelta(days=20)),
            make_open_pr(2, age=timedelta(days=60), inactive=timedelta(days=8, hours=5)),
            make_open_pr(5, age=timedelta(days=60), inactive=timedelta(days=1)),
        ]

        result = self.analyzer.detect_stale_prs(prs, NOW)

        self.assertEqual([s['number'] for s in result['stale_prs']], [9, 2, 3])

    def test_empty_backlog_is_clean(self):
        """Test no open PRs yields a clean board."""
        self.assertEqual(self.analyzer.detect_stale_prs([], NOW)['status'], 'clean')


class TestGhostReviewers(unittest.TestCase):
    """Test cases for requested reviewers who have not responded."""

    def setUp(self):
        """Set up test fixtures."""
        self.analyzer = RiskAnalyzer()

    def test_only_pending_requests_count(self):
        """Test a reviewer who already reviewed is not a ghost."""
        pr = make_open_pr(1, age=timedelta(hours=72), reviewers=['alice'], requested=['bob'])

        result = self.analyzer.detect_ghost_reviewers([pr], NOW)

        self.assertEqual(result['status'], 'ghosts_found')
        self.assertEqual(result['ghosts'], [{'reviewer': 'bob', 'blocked_prs': 1}])

    def test_young_prs_ignored(self):
        """Test PRs open for 48 hours or less are not considered."""
        prs = [
            make_open_pr(1, age=timedelta(hours=24), requested=['carol']),
            make_open_pr(2, age=timedelta(hours=48), requested=['dave']),
        ]

        result = self.analyzer.detect_ghost_reviewers(prs, NOW)

        self.assertEqual(result['status'], 'no_ghosts')
        self.assertEqual(result['ghosts'], [])

    def test_ranked_by_blocked_prs(self):
        """Test ghosts are ranked by how many PRs they block."""
        old = timedelta(days=5)
        prs = [
            make_open_pr(1, age=old, requested=['zed', 'amy']),
            make_open_pr(2, age=old, requested=['zed']),
            make_open_pr(3, age=old, requested=['bea']),
        ]

        result = self.analyzer.detect_ghost_reviewers(prs, NOW)

        self.assertEqual(result['ghosts'], [
            {'reviewer': 'zed', 'blocked_prs': 2},
            {'reviewer': 'amy', 'blocked_prs': 1},
            {'reviewer': 'bea', 'blocked_prs': 1},
        ])


@pytest.mark.parametrize('share,level', [
    (1.0, 'critical'),
    (0.5, 'critical'),
    (0.49, 'high_load'),
    (0.3, 'high_load'),
    (0.21, 'healthy'),
    (0.2, None),
    (0.05, None),
])
def test_classify_review_share(share, level):
    """Test review share classification boundaries."""
    assert RiskAnalyzer.classify_review_share(share) == level
