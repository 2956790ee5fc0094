"""
CSV reporting module for PR velocity analysis results.

This module exports the merged PRs behind a velocity report to CSV, one row
per PR with its merge, triage wait and review durations, preceded by a
commented summary of the headline statistics.
"""

import csv
import logging
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Sequence
from pathlib import Path

from pr_record import PRRecord


class CSVReportError(Exception):
    """Custom exception for CSV reporting related errors."""
    pass


class CSVReporter:
    """
    CSV reporter for PR velocity analysis results.

    This class handles the formatting and export of merged PR data
    to CSV files with proper headers and data formatting.
    """

    def __init__(self, output_path: str):
        """
        Initialize CSV reporter with output file path.

        Args:
            output_path: Path where the CSV file will be written

        Raises:
            CSVReportError: If output path is invalid
        """
        if not output_path:
            raise CSVReportError("Output path is required")

        self.output_path = Path(output_path)
        self.logger = logging.getLogger(__name__)

        if self.output_path.exists() and self.output_path.is_dir():
            raise CSVReportError("Output path cannot be a directory")

        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def generate_report(self, merged_prs: Sequence[PRRecord], report: Dict[str, Any],
                        repository: str = '') -> str:
        """
        Generate CSV report for the merged PRs of a velocity analysis.

        Args:
            merged_prs: Merged PR records that were analyzed
            report: Report dictionary from PRAnalyzer.analyze()
            repository: Repository name in owner/repo format

        Returns:
            Path to the generated CSV file

        Raises:
            CSVReportError: If report generation fails
        """
        if report is None:
            raise CSVReportError("Analysis report is required")

        if 'general_stats' not in report:
            raise CSVReportError("Analysis report must contain 'general_stats'")

        try:
            rows = self._format_csv_rows(merged_prs, repository)

            with open(self.output_path, 'w', newline='', encoding='utf-8') as csvfile:
                writer = csv.writer(csvfile)
                self._write_summary_header(writer, report, repository)
                writer.writerow(self._format_csv_headers())
                writer.writerows(rows)

            self.logger.info(f"Generated CSV report with {len(rows)} PRs at {self.output_path}")

            return str(self.output_path)

        except Exception as e:
            raise CSVReportError(f"Failed to generate CSV report: {e}")

    def _format_csv_headers(self) -> List[str]:
        return [
            'repository',
            'pr_number',
            'title',
            'author',
            'created_at',
            'merged_at',
            'first_review_at',
            'size',
            'time_to_merge_hours',
            'triage_wait_hours',
            'review_hours',
            'top_level_dirs',
        ]

    def _format_csv_rows(self, merged_prs: Sequence[PRRecord], repository: str) -> List[List[str]]:
        """
        Format one CSV row per merged PR.

        Args:
            merged_prs: Merged PR records
            repository: Repository name

        Returns:
            List of CSV data rows
        """
        rows = []

        for pr in merged_prs:
            if not pr.is_merged:
                self.logger.warning(f"Skipping PR #{pr.number}: not merged")
                continue

            wait = pr.triage_wait()
            review = pr.review_duration()

            rows.append([
                repository,
                str(pr.number),
                self._sanitize_text(pr.title),
                pr.author,
                self._format_datetime(pr.created_at),
                self._format_datetime(pr.merged_at),
                self._format_datetime(pr.first_review_at),
                str(pr.size),
                self._format_number(pr.merge_hours()),
                self._format_number(wait.total_seconds() / 3600 if wait is not None else None),
                self._format_number(review.total_seconds() / 3600 if review is not None else None),
                ';'.join(pr.top_level_groups()),
            ])

        return rows

    def _write_summary_header(self, writer: csv.writer, report: Dict[str, Any], repository: str) -> None:
        """
        Write headline statistics as CSV comments.

        Args:
            writer: CSV writer instance
            report: Report dictionary
            repository: Repository name
        """
        writer.writerow([f"# PR Velocity Report - Generated {datetime.now().isoformat()}"])

        if repository:
            writer.writerow([f"# Repository: {repository}"])

        sample = report.get('sample', {})
        writer.writerow([f"# Merged PRs: {sample.get('merged_prs', 0)}"])
        writer.writerow([f"# Analyzed PRs: {sample.get('analyzed_prs', 0)}"])

        stats = report['general_stats']
        if stats.get('status') != 'no_data':
            writer.writerow([f"# Average Time to Merge: {self._format_number(stats['mean_hours'])} hours"])
            writer.writerow([f"# Median Time to Merge: {self._format_number(stats['median_hours'])} hours"])

        forecast = report.get('forecast', {})
        if forecast.get('status') == 'ok':
            writer.writerow([f"# Forecast Time to Merge: {self._format_number(forecast['forecast_hours'])} hours "
                             f"({forecast['trend']})"])

        writer.writerow([])

    def _sanitize_text(self, text: str) -> str:
        """
        Sanitize text for CSV output by handling special characters.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text safe for CSV
        """
        if not text:
            return ""

        sanitized = str(text).replace('\n', ' ').replace('\r', ' ').replace('\t', ' ')
        sanitized = ' '.join(sanitized.split())

        if len(sanitized) > 200:
            sanitized = sanitized[:197] + "..."

        return sanitized

    def _format_datetime(self, value: Optional[datetime]) -> str:
        if value is None:
            return ""
        return value.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')

    def _format_number(self, number: Optional[float]) -> str:
        if number is None:
            return ""
        return f"{float(number):.2f}"

    def get_output_path(self) -> str:
        return str(self.output_path)
