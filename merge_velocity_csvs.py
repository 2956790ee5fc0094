#!/usr/bin/env python3
"""
Merge PR velocity CSV exports from multiple repositories.

This script auto-discovers all pr_velocity_*.csv files written by
pr_velocity_analyzer.py, concatenates them into one combined file and
builds a per-repository, per-month summary for cross-repo comparison.

Usage:
    python merge_velocity_csvs.py
    python merge_velocity_csvs.py --input-dir /path/to/csvs
    python merge_velocity_csvs.py --output-dir /path/to/output
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import pandas as pd


COMBINED_FILENAME = "pr_velocity_combined.csv"
SUMMARY_FILENAME = "pr_velocity_monthly_summary.csv"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def discover_csv_files(input_dir: Path) -> List[Path]:
    """Find per-repository velocity exports, ignoring outputs of earlier merges."""
    logger = logging.getLogger(__name__)

    files = [
        f for f in sorted(input_dir.glob("pr_velocity_*.csv"))
        if f.name not in (COMBINED_FILENAME, SUMMARY_FILENAME)
    ]

    logger.info(f"Found {len(files)} PR velocity CSV files")
    return files


def count_header_lines(file_path: Path) -> int:
    """Count the leading '#' comment and blank lines written before the CSV header."""
    count = 0
    with open(file_path, 'r', encoding='utf-8') as f:
        for line in f:
            if line.startswith('#') or not line.strip():
                count += 1
            else:
                break
    return count


def load_velocity_csv(file_path: Path) -> pd.DataFrame:
    """Load one velocity export, skipping its comment header."""
    return pd.read_csv(file_path, skiprows=count_header_lines(file_path))


def merge_csv_files(files: List[Path], output_path: Path) -> pd.DataFrame:
    """
    Merge multiple velocity CSV files into a single combined file.

    Args:
        files: CSV files to merge
        output_path: Path for the combined CSV

    Returns:
        The combined DataFrame (empty if nothing could be read)
    """
    logger = logging.getLogger(__name__)

    dataframes = []
    for file_path in files:
        try:
            df = load_velocity_csv(file_path)
            logger.debug(f"Loaded {file_path.name}: {len(df)} rows")
            dataframes.append(df)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read {file_path}: {e}")
            continue

    if not dataframes:
        logger.error("No velocity files could be read")
        return pd.DataFrame()

    combined_df = pd.concat(dataframes, ignore_index=True)

    sort_columns = [c for c in ('repository', 'merged_at') if c in combined_df.columns]
    if sort_columns:
        combined_df = combined_df.sort_values(sort_columns, ignore_index=True)

    combined_df.to_csv(output_path, index=False)
    logger.info(f"Created {output_path.name}: {len(combined_df)} rows from {len(files)} files")

    return combined_df


def build_monthly_summary(combined_df: pd.DataFrame) -> pd.DataFrame:
    """
    Summarize merge times per repository and merge month.

    Returns:
        DataFrame with repository, month, pr_count, mean and median time to merge
    """
    columns = ['repository', 'month', 'pr_count', 'mean_time_to_merge_hours', 'median_time_to_merge_hours']
    if combined_df.empty:
        return pd.DataFrame(columns=columns)

    df = combined_df.copy()
    merged_at = pd.to_datetime(df['merged_at'].str.replace(' UTC', '', regex=False), utc=True)
    df['month'] = merged_at.dt.strftime('%Y-%m')

    summary = (
        df.groupby(['repository', 'month'])['time_to_merge_hours']
        .agg(pr_count='count', mean_time_to_merge_hours='mean', median_time_to_merge_hours='median')
        .reset_index()
    )
    return summary[columns].round(2)


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Merge PR velocity CSV files from multiple repositories',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --input-dir ~/reports/velocity
  %(prog)s --input-dir /path/to/csvs --output-dir /path/to/output
        """
    )

    parser.add_argument(
        '--input-dir', '-i',
        type=str,
        default='.',
        help='Directory containing pr_velocity_*.csv files (default: current directory)'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default=None,
        help='Directory for output combined CSV files (default: same as input directory)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_arguments()
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    input_dir = Path(args.input_dir).resolve()
    output_dir = Path(args.output_dir).resolve() if args.output_dir else input_dir

    if not input_dir.exists():
        logger.error(f"Input directory not found: {input_dir}")
        return 1

    output_dir.mkdir(parents=True, exist_ok=True)

    files = discover_csv_files(input_dir)
    if not files:
        logger.error("No pr_velocity_*.csv files found in the input directory")
        print(f"\n❌ No pr_velocity_*.csv files found in: {input_dir}")
        print("Make sure you've run pr_velocity_analyzer.py with --output first.")
        return 1

    combined_output = output_dir / COMBINED_FILENAME
    combined_df = merge_csv_files(files, combined_output)
    if combined_df.empty:
        print("\n❌ None of the discovered files could be read.")
        return 1

    summary_output = output_dir / SUMMARY_FILENAME
    summary_df = build_monthly_summary(combined_df)
    summary_df.to_csv(summary_output, index=False)
    logger.info(f"Created {summary_output.name}: {len(summary_df)} rows")

    repositories = sorted(combined_df['repository'].dropna().unique()) if 'repository' in combined_df.columns else []
    print(f"\n📁 Merged {len(repositories)} repositories:")
    for repository in repositories:
        print(f"   • {repository}")

    print(f"\n✅ Merge complete!")
    print(f"   PR Rows:         {combined_output.name} ({len(combined_df)} rows)")
    print(f"   Monthly Summary: {summary_output.name} ({len(summary_df)} rows)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
