#!/usr/bin/env python3
"""
GitHub PR Velocity Analysis Tool

This tool analyzes a repository's pull requests to report:
- Time-to-merge statistics, distribution and monthly trends
- Review efficiency (triage wait vs active review)
- Size vs speed correlation, directory hotspots and long-tail authors
- A 3-month forecast
- Risks in the open backlog: hero reviewers, stale PRs and ghost reviewers

Usage:
    python pr_velocity_analyzer.py owner/repo [options]

Environment Variables:
    GITHUB_TOKEN: GitHub personal access token (required)

Examples:
    python pr_velocity_analyzer.py microsoft/vscode
    python pr_velocity_analyzer.py facebook/react --limit 300 --exclude-outliers
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Tuple

from console_reporter import format_report
from csv_reporter import CSVReporter, CSVReportError
from github_client import GitHubClient, GitHubAPIError, GitHubAuthenticationError
from pr_analyzer import PRAnalyzer, PRAnalysisError


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        verbose: Enable verbose logging output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if verbose:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    else:
        log_format = '%(asctime)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_arguments() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description='Analyze GitHub PR velocity and backlog risks',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s microsoft/vscode
  %(prog)s facebook/react --limit 300 --exclude-outliers
  %(prog)s kubernetes/kubernetes --output k8s_velocity.csv --verbose

Environment Variables:
  GITHUB_TOKEN    GitHub personal access token (required)
        """
    )

    parser.add_argument(
        'repository',
        nargs='?',
        help='GitHub repository in format owner/repo (e.g., microsoft/vscode)'
    )

    parser.add_argument(
        '--limit',
        type=int,
        default=100,
        help='Maximum number of merged PRs to fetch (default: 100)'
    )

    parser.add_argument(
        '--open-limit',
        type=int,
        default=100,
        help='Maximum number of open PRs to fetch for risk analysis (default: 100)'
    )

    parser.add_argument(
        '--exclude-outliers',
        action='store_true',
        help='Exclude the fastest and slowest 5%% of merged PRs'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        default=30.0,
        help='Timeout in seconds for each API request (default: 30)'
    )

    parser.add_argument(
        '--delay',
        type=float,
        default=0.2,
        help='Delay in seconds between paginated API requests (default: 0.2)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        nargs='?',
        const='',
        default=None,
        help='Also export merged PR details to CSV (default name: pr_velocity_<owner>_<repo>.csv)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress all output except errors'
    )

    parser.add_argument(
        '--check-rate-limit',
        action='store_true',
        help='Check current GitHub GraphQL rate limit status and exit'
    )

    return parser.parse_args()


def validate_repository_name_format(repository: str) -> bool:
    """
    Validate repository name format.

    Args:
        repository: Repository name to validate

    Returns:
        True if format is valid, False otherwise
    """
    if not repository or '/' not in repository:
        return False

    parts = repository.split('/')
    if len(parts) != 2:
        return False

    owner, repo = parts
    if not owner or not repo:
        return False

    invalid_chars = set(['..', ' ', '\t', '\n', '\r'])
    for part in parts:
        if any(char in part for char in invalid_chars):
            return False

    return True


def validate_inputs(args: argparse.Namespace) -> Tuple[str, str]:
    """
    Validate command-line inputs and extract repository information.

    Args:
        args: Parsed command-line arguments

    Returns:
        Tuple of (owner, repo) strings

    Raises:
        ValueError: If inputs are invalid
    """
    if not validate_repository_name_format(args.repository):
        raise ValueError("Repository must be in format 'owner/repo' with valid characters")

    owner, repo = args.repository.split('/')

    if args.limit < 1:
        raise ValueError("Limit must be at least 1")

    if args.open_limit < 1:
        raise ValueError("Open limit must be at least 1")

    if args.timeout <= 0:
        raise ValueError("Timeout must be positive")

    if args.delay < 0:
        raise ValueError("Delay cannot be negative")

    if args.output:
        output_path = Path(args.output)
        if output_path.exists() and output_path.is_dir():
            raise ValueError("Output path cannot be a directory")

    return owner.strip(), repo.strip()


def sanitize_repository_name_for_filename(repo_name: str) -> str:
    """
    Sanitize repository name for safe filename usage.

    Args:
        repo_name: Repository name in owner/repo format

    Returns:
        Sanitized repository name safe for use in filenames
    """
    if not repo_name:
        return "unknown_repo"

    sanitized = repo_name
    for char in '/\\:*?"<>|':
        sanitized = sanitized.replace(char, '_')

    return '_'.join(sanitized.split())


def generate_auto_filename(owner: str, repo: str) -> str:
    """
    Generate the default CSV export filename for a repository.

    The pr_velocity_ prefix is what merge_velocity_csvs.py discovers.
    """
    if not owner or not repo:
        return "pr_velocity.csv"

    return f"pr_velocity_{sanitize_repository_name_for_filename(f'{owner}/{repo}')}.csv"


def print_rate_limit_status(github_client: GitHubClient) -> None:
    rate_status = github_client.get_rate_limit_status()
    print("\n📊 GitHub GraphQL Rate Limit Status")
    print("=" * 40)
    print(f"Total Limit: {rate_status['limit']:,} points/hour")
    print(f"Used: {rate_status['used']:,} points")
    print(f"Remaining: {rate_status['remaining']:,} points")
    print(f"Reset Time: {rate_status['reset_time']}")


def main() -> int:
    """
    Main application entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    try:
        args = parse_arguments()

        if args.debug:
            log_level = "DEBUG"
        elif args.quiet:
            log_level = "ERROR"
        else:
            log_level = "INFO"

        setup_logging(log_level, args.verbose)
        logger = logging.getLogger(__name__)

        if not args.check_rate_limit:
            if not args.repository:
                print("❌ Error: Repository argument is required unless using --check-rate-limit")
                return 1
            owner, repo = validate_inputs(args)
            if args.output == '':
                args.output = generate_auto_filename(owner, repo)

        try:
            token = GitHubClient.get_token_from_env()
            github_client = GitHubClient(token, timeout=args.timeout, delay=args.delay)
            github_client.validate_token()
        except GitHubAuthenticationError as e:
            logger.error(f"GitHub authentication failed: {e}")
            print("\n❌ GitHub authentication failed!")
            print("Please ensure GITHUB_TOKEN environment variable is set with a valid token.")
            print("You can create a token at: https://github.com/settings/tokens")
            return 1

        if args.check_rate_limit:
            try:
                print_rate_limit_status(github_client)
                return 0
            except GitHubAPIError as e:
                logger.error(f"Failed to check rate limit status: {e}")
                print(f"\n❌ Failed to check rate limit status: {e}")
                return 1

        repository = f"{owner}/{repo}"
        logger.info(f"Starting PR velocity analysis for {repository}")
        pr_analyzer = PRAnalyzer(github_client)

        try:
            merged_prs = pr_analyzer.fetch_merged_prs(owner, repo, args.limit)
        except (GitHubAPIError, PRAnalysisError) as e:
            logger.error(f"Failed to fetch merged PRs: {e}")
            print(f"\n❌ Failed to fetch merged PRs: {e}")
            return 1

        # Open PR failures only drop the risk sections
        risk_available = True
        try:
            open_prs = pr_analyzer.fetch_open_prs(owner, repo, args.open_limit)
        except (GitHubAPIError, PRAnalysisError) as e:
            logger.warning(f"Failed to fetch open PRs, skipping risk analysis: {e}")
            open_prs = []
            risk_available = False

        if not merged_prs and not open_prs:
            print(f"\n⚠️  No PRs found in {repository}")
            return 0

        report = pr_analyzer.analyze(
            merged_prs, open_prs,
            now=datetime.now(timezone.utc),
            exclude_outliers=args.exclude_outliers
        )

        if args.output:
            try:
                csv_reporter = CSVReporter(args.output)
                output_file = csv_reporter.generate_report(merged_prs, report, repository)
                logger.info(f"Detailed results saved to: {output_file}")
            except CSVReportError as e:
                logger.error(f"CSV generation failed: {e}")
                print(f"\n❌ Failed to generate CSV report: {e}")
                return 1

        if not args.quiet:
            print(format_report(report, repository, risk_available=risk_available))

        logger.info("Analysis completed successfully")
        return 0

    except KeyboardInterrupt:
        print("\n\n⚠️  Analysis interrupted by user")
        return 1

    except ValueError as e:
        print(f"❌ Error: {e}")
        return 1

    except Exception as e:
        logger = logging.getLogger(__name__)
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"\n❌ Unexpected error occurred: {e}")
        print("Run with --debug for detailed error information")
        return 1


if __name__ == "__main__":
    sys.exit(main())
