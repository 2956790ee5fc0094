"""
Unit tests for the velocity analyzer.

This module covers outlier filtering, descriptive statistics, review phase
decomposition, size/speed correlation and the merge time histogram.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pr_record import PRRecord
from velocity_analyzer import VelocityAnalyzer, EmptySampleError, PRAnalysisError


BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


def make_pr(number, merge_hours, size=10, review_hours=None):
    return PRRecord(
        number=number,
        created_at=BASE,
        updated_at=BASE,
        author=f'dev{number % 3}',
        merged_at=BASE + timedelta(hours=merge_hours),
        first_review_at=BASE + timedelta(hours=review_hours) if review_hours is not None else None,
        size=size,
    )


def make_sample(durations):
    return [make_pr(i + 1, hours) for i, hours in enumerate(durations)]


class TestOutlierFilter:
    """Test cases for trimming the fastest and slowest PRs."""

    def setup_method(self):
        self.analyzer = VelocityAnalyzer()

    @pytest.mark.parametrize('n', [0, 1, 3])
    def test_small_sample_unchanged(self, n):
        """Test samples below four PRs are not trimmed."""
        sample = make_sample(range(n, 0, -1))

        result = self.analyzer.filter_outliers(sample)

        assert result == sample
        assert result is not sample

    @pytest.mark.parametrize('n,expected', [(4, 2), (19, 17), (20, 18), (40, 36), (100, 90)])
    def test_trimmed_size(self, n, expected):
        """Test output size is n - 2 * max(1, floor(0.05 n))."""
        sample = make_sample([(i * 7) % n + 1 for i in range(n)])

        assert len(self.analyzer.filter_outliers(sample)) == expected

    def test_retained_records_lie_between_removed(self):
        """Test no retained PR is faster or slower than a removed one on that tail."""
        sample = make_sample([50, 3, 8, 1, 400, 20, 5, 90])

        result = self.analyzer.filter_outliers(sample)
        removed = [pr for pr in sample if pr not in result]
        retained_hours = [pr.merge_hours() for pr in result]

        assert sorted(pr.merge_hours() for pr in removed) == [1, 400]
        assert retained_hours == sorted(retained_hours)
        assert min(retained_hours) >= 1 and max(retained_hours) <= 400

    def test_input_not_mutated(self):
        """Test the caller's list keeps its order."""
        sample = make_sample([5, 1, 4, 2, 3])
        original = list(sample)

        self.analyzer.filter_outliers(sample)

        assert sample == original


class TestGeneralStats:
    """Test cases for descriptive statistics of merge time."""

    def setup_method(self):
        self.analyzer = VelocityAnalyzer()

    def test_odd_sample(self):
        """Test the median is the middle value for odd samples."""
        stats = self.analyzer.calculate_general_stats(make_sample([9, 1, 5]))

        assert stats == {
            'count': 3,
            'mean_hours': 5.0,
            'median_hours': 5.0,
            'min_hours': 1.0,
            'max_hours': 9.0,
        }

    def test_even_sample(self):
        """Test the median averages the two middle values for even samples."""
        stats = self.analyzer.calculate_general_stats(make_sample([10, 2, 4, 100]))

        assert stats['median_hours'] == 7.0
        assert stats['mean_hours'] == 29.0
        assert stats['min_hours'] == 2.0
        assert stats['max_hours'] == 100.0

    def test_single_pr(self):
        """Test a single PR is its own mean, median, min and max."""
        stats = self.analyzer.calculate_general_stats(make_sample([3]))

        assert stats['count'] == 1
        assert stats['mean_hours'] == stats['median_hours'] == stats['min_hours'] == stats['max_hours'] == 3.0

    def test_empty_sample_raises(self):
        """Test an empty sample is signalled distinctly."""
        with pytest.raises(EmptySampleError):
            self.analyzer.calculate_general_stats([])

    def test_empty_sample_error_is_analysis_error(self):
        """Test EmptySampleError belongs to the analysis error family."""
        assert issubclass(EmptySampleError, PRAnalysisError)


class TestReviewEfficiency:
    """Test cases for triage wait and review duration averages."""

    def setup_method(self):
        self.analyzer = VelocityAnalyzer()

    def test_averages_only_reviewed_prs(self):
        """Test PRs without reviews are excluded, not counted as zero."""
        sample = [
            make_pr(1, merge_hours=10, review_hours=2),
            make_pr(2, merge_hours=20, review_hours=6),
            make_pr(3, merge_hours=30),
        ]

        result = self.analyzer.calculate_review_efficiency(sample)

        assert result['status'] == 'ok'
        assert result['reviewed_prs'] == 2
        assert result['total_prs'] == 3
        assert result['avg_wait_hours'] == 4.0
        assert result['avg_review_hours'] == 11.0

    def test_clamped_phases(self):
        """Test negative phases contribute zero."""
        sample = [make_pr(1, merge_hours=10, review_hours=-4), make_pr(2, merge_hours=10, review_hours=14)]

        result = self.analyzer.calculate_review_efficiency(sample)

        assert result['avg_wait_hours'] == 7.0
        assert result['avg_review_hours'] == 7.0

    def test_no_reviews(self):
        """Test a sample without reviews is reported explicitly."""
        result = self.analyzer.calculate_review_efficiency(make_sample([1, 2]))

        assert result['status'] == 'no_reviews'
        assert result['reviewed_prs'] == 0
        assert result['total_prs'] == 2
        assert result['avg_wait_hours'] is None
        assert result['avg_review_hours'] is None


class TestSizeCorrelation:
    """Test cases for the size vs speed correlation."""

    def setup_method(self):
        self.analyzer = VelocityAnalyzer()

    def test_perfect_positive_correlation(self):
        """Test merge time growing linearly with size gives r = 1."""
        sample = [make_pr(i, merge_hours=2 * i, size=100 * i) for i in range(1, 6)]

        result = self.analyzer.analyze_size_correlation(sample)

        assert result['coefficient'] == pytest.approx(1.0)
        assert result['verdict'] == 'strong_positive'
        assert result['sample_size'] == 5

    def test_negative_correlation_is_weak(self):
        """Test larger PRs merging faster falls in the weak bucket."""
        sample = [make_pr(i, merge_hours=100 - 10 * i, size=50 * i) for i in range(1, 6)]

        result = self.analyzer.analyze_size_correlation(sample)

        assert result['coefficient'] == pytest.approx(-1.0)
        assert result['verdict'] == 'weak'

    def test_identical_sizes_give_zero(self):
        """Test zero variance in size gives exactly 0."""
        sample = [make_pr(i, merge_hours=i * 3, size=42) for i in range(1, 6)]

        assert self.analyzer.analyze_size_correlation(sample)['coefficient'] == 0

    def test_identical_durations_give_zero(self):
        """Test zero variance in merge time gives exactly 0."""
        sample = [make_pr(i, merge_hours=5, size=i * 10) for i in range(1, 6)]

        assert self.analyzer.analyze_size_correlation(sample)['coefficient'] == 0

    @pytest.mark.parametrize('seconds,count', [(3960, 7), (4000, 10), (1, 3)])
    def test_identical_fractional_hour_durations_give_zero(self, seconds, count):
        """Test constant durations that are not whole hours still give exactly 0."""
        sample = [
            PRRecord(
                number=i,
                created_at=BASE,
                updated_at=BASE,
                author='dev',
                merged_at=BASE + timedelta(seconds=seconds),
                size=i * 37,
            )
            for i in range(1, count + 1)
        ]

        result = self.analyzer.analyze_size_correlation(sample)

        assert result['coefficient'] == 0
        assert result['verdict'] == 'weak'

    def test_single_pr_gives_zero(self):
        """Test a single PR has a degenerate, zero correlation."""
        result = self.analyzer.analyze_size_correlation([make_pr(1, merge_hours=5, size=10)])

        assert result['coefficient'] == 0
        assert result['verdict'] == 'weak'

    def test_coefficient_in_range(self):
        """Test a noisy sample stays within [-1, 1]."""
        sizes = [5, 900, 40, 12, 300, 77, 1500, 3]
        hours = [30, 2, 48, 1, 200, 9, 16, 70]
        sample = [make_pr(i, merge_hours=h, size=s) for i, (s, h) in enumerate(zip(sizes, hours), 1)]

        coefficient = self.analyzer.analyze_size_correlation(sample)['coefficient']

        assert -1.0 <= coefficient <= 1.0

    @pytest.mark.parametrize('coefficient,verdict', [
        (0.51, 'strong_positive'),
        (0.5, 'moderate'),
        (0.31, 'moderate'),
        (0.3, 'weak'),
        (0.0, 'weak'),
        (-0.9, 'weak'),
    ])
    def test_classification_tiers(self, coefficient, verdict):
        """Test verdict boundaries are exclusive at 0.5 and 0.3."""
        assert VelocityAnalyzer.classify_correlation(coefficient) == verdict

    def test_empty_sample_raises(self):
        """Test correlation on an empty sample is signalled distinctly."""
        with pytest.raises(EmptySampleError):
            self.analyzer.analyze_size_correlation([])


class TestHistogram:
    """Test cases for merge time distribution buckets."""

    def setup_method(self):
        self.analyzer = VelocityAnalyzer()

    def test_bucket_counts(self):
        """Test PRs land in the bucket whose upper bound exceeds their duration."""
        sample = make_sample([0.5, 2, 30, 100, 200, 800, 1000])

        result = self.analyzer.build_histogram(sample)

        assert [b['count'] for b in result['buckets']] == [1, 1, 2, 1, 2]
        assert [b['label'] for b in result['buckets']] == ['< 1h', '1h - 1d', '1d - 1w', '1w - 30d', '>= 30d']

    def test_boundaries_belong_to_next_bucket(self):
        """Test a duration exactly on a boundary goes to the following bucket."""
        sample = make_sample([1, 24, 24 * 7, 24 * 30])

        result = self.analyzer.build_histogram(sample)

        assert [b['count'] for b in result['buckets']] == [0, 1, 1, 1, 1]

    def test_bar_lengths_relative_to_max(self):
        """Test bar lengths scale counts against the largest bucket."""
        sample = make_sample([0.1, 0.2, 0.3, 0.4, 5, 5, 50])

        result = self.analyzer.build_histogram(sample)

        assert result['max_count'] == 4
        assert result['scale'] == 20
        assert [b['bar_length'] for b in result['buckets']] == [20, 10, 5, 0, 0]

    def test_empty_sample_raises(self):
        """Test the histogram on an empty sample is signalled distinctly."""
        with pytest.raises(EmptySampleError):
            self.analyzer.build_histogram([])
