"""
Console rendering for PR velocity reports.

This module turns the structured report produced by PRAnalyzer.analyze()
into the human-readable, sectioned text printed by the command-line tool.
"""

from typing import Any, Dict, List, Optional


SEPARATOR = "-" * 60
BAR_CHAR = "■"

CORRELATION_TEXT = {
    'strong_positive': [
        "   🚨 RESULT: Strong Positive Correlation (> 0.5)",
        "      Insight: Larger PRs take significantly longer to merge.",
        "      Action:  Break tasks into smaller, atomic PRs to speed up velocity.",
    ],
    'moderate': [
        "   ⚠️  RESULT: Moderate Correlation (0.3 - 0.5)",
        "      Insight: Size is a factor, but not the only one.",
        "      Action:  Encourage smaller PRs, but also look for process bottlenecks.",
    ],
    'weak': [
        "   ✅ RESULT: Weak/No Correlation (<= 0.3)",
        "      Insight: Small PRs are getting stuck just as often as huge ones.",
        "      Action:  Your bottleneck is likely PROCESS (Triage/CI/Availability), not code size.",
    ],
}

MONTH_TREND_GLYPHS = {'improving': "🚀", 'degrading': "🐢", 'flat': "➖", None: ""}

FORECAST_TREND_TEXT = {
    'slowing_down': "📉 Slowing Down",
    'speeding_up': "📈 Speeding Up",
    'stable': "➡️ Stable",
}

HERO_LEVEL_TEXT = {
    'critical': "🚨 CRITICAL RISK",
    'high_load': "⚠️  High Load",
    'healthy': "✅ Healthy",
}


def humanize_duration(hours: Optional[float]) -> str:
    """
    Format a duration in hours as a short human-readable string.

    Months are 30 days and years 365 days.

    Args:
        hours: Duration in hours, or None

    Returns:
        String such as '45s', '3m 20s', '5h 12m', '2d 4h', '1mo 3d' or '1y 2mo'
    """
    if hours is None:
        return "n/a"

    seconds = int(max(hours, 0.0) * 3600)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"

    whole_hours = seconds // 3600
    if whole_hours < 24:
        return f"{whole_hours}h {(seconds // 60) % 60}m"

    days = whole_hours // 24
    if days < 30:
        return f"{days}d {whole_hours % 24}h"

    if days // 30 < 12:
        return f"{days // 30}mo {days % 30}d"

    return f"{days // 365}y {(days % 365) // 30}mo"


def render_bar(bar_length: int) -> str:
    """Draw a histogram bar of the given length."""
    return BAR_CHAR * max(bar_length, 0)


def _section(title: str, concept: str, why: str) -> List[str]:
    return [title, f"   • Concept: {concept}", f"   • Why:     {why}", ""]


def _no_data(section: Dict[str, Any]) -> bool:
    return isinstance(section, dict) and section.get('status') == 'no_data'


def format_general_stats(stats: Dict[str, Any]) -> List[str]:
    lines = _section(
        "📊 GENERAL STATISTICS",
        "Measures the total lifecycle of a Pull Request from creation to merge.",
        "High average vs median indicates outliers dragging the team down. This is your baseline velocity.",
    )
    if _no_data(stats):
        lines.append("   No merged PRs to analyze.")
        return lines

    lines.extend([
        f"   Count:   {stats['count']}",
        f"   Average: {humanize_duration(stats['mean_hours'])}",
        f"   Median:  {humanize_duration(stats['median_hours'])}",
        f"   Min:     {humanize_duration(stats['min_hours'])}",
        f"   Max:     {humanize_duration(stats['max_hours'])}",
    ])
    return lines


def format_review_efficiency(efficiency: Dict[str, Any]) -> List[str]:
    lines = _section(
        "🚦 REVIEW EFFICIENCY",
        "Splits time into 'Waiting for Review' vs 'Active Review Process'.",
        "Helps distinguish between a Triage problem (ignoring PRs) and a Complexity problem (hard to approve).",
    )
    if efficiency['status'] != 'ok':
        lines.append("   No reviews detected (Direct merges?).")
        return lines

    lines.extend([
        f"   Reviewed PRs:               {efficiency['reviewed_prs']}/{efficiency['total_prs']}",
        f"   Avg Time to First Review:   {humanize_duration(efficiency['avg_wait_hours'])} (Triage Speed)",
        f"   Avg Review to Merge:        {humanize_duration(efficiency['avg_review_hours'])} (Coding/Fixing Speed)",
    ])
    return lines


def format_size_correlation(correlation: Dict[str, Any]) -> List[str]:
    lines = _section(
        "📐 SIZE vs SPEED ANALYSIS",
        "Correlation between lines of code changed and merge duration.",
        "Determines if 'Big PRs' are the bottleneck or if the process is slow regardless of size.",
    )
    if _no_data(correlation):
        lines.append("   No merged PRs to analyze.")
        return lines

    lines.append(f"   Correlation Coeff: {correlation['coefficient']:.2f}  (Range: -1.0 to +1.0)")
    lines.extend(CORRELATION_TEXT[correlation['verdict']])
    return lines


def format_hotspots(hotspots: List[Dict[str, Any]]) -> List[str]:
    lines = _section(
        "🔥 DIRECTORY HOTSPOTS (Avg Merge Time)",
        "Average merge time grouped by root directory.",
        "Identifies parts of the codebase that are hard to review, prone to debate, or lacking owners.",
    )
    if not hotspots:
        lines.append("   No file data available.")
    for hotspot in hotspots:
        lines.append(f"   {hotspot['group']:<20}: {humanize_duration(hotspot['avg_merge_hours'])} "
                     f"(avg over {hotspot['pr_count']} PRs)")
    return lines


def format_long_tail(long_tail: Dict[str, Any]) -> List[str]:
    lines = _section(
        "🐌 LONG TAIL CONTRIBUTORS (Handling the Slowest 10%)",
        "Authors frequently found in the slowest 10% of merges.",
        "These devs might be tackling the hardest problems, or they need help breaking down tasks.",
    )
    if not long_tail['authors']:
        lines.append("   No merged PRs to analyze.")
        return lines

    for entry in long_tail['authors']:
        lines.append(f"   {entry['author']:<15}: {entry['slow_pr_count']} slow PRs")
    lines.append("   (Note: These authors might be tackling the hardest complexity, not working slowly.)")
    return lines


def format_monthly_trends(trends: List[Dict[str, Any]]) -> List[str]:
    lines = _section(
        "📈 MONTHLY TRENDS",
        "Monthly average merge times over the requested period.",
        "Spot if the team is getting faster (🚀) or bogging down (🐢) over time.",
    )
    if not trends:
        lines.append("   No merged PRs to analyze.")
    for month in trends:
        glyph = MONTH_TREND_GLYPHS[month['trend']]
        lines.append(f"   {month['month']}: {humanize_duration(month['avg_merge_hours']):<15} "
                     f"({month['pr_count']:2d} PRs) {glyph}".rstrip())
    return lines


def format_forecast(forecast: Dict[str, Any]) -> List[str]:
    lines = _section(
        "🔮 FORECAST (Next 30 Days)",
        "A 3-month moving average projection of merge times.",
        "Predicts where your velocity is heading if current habits continue.",
    )
    if forecast['status'] != 'ok':
        lines.append("   (Not enough data for a reliable forecast. Need 3+ months.)")
        return lines

    lines.append("   Based on last 3 months:")
    for month in forecast['basis']:
        lines.append(f"   - {month['month']}: {humanize_duration(month['avg_merge_hours'])}")
    lines.extend([
        "",
        f"   🎯 PREDICTION: ~{humanize_duration(forecast['forecast_hours'])} / PR",
        f"   🏁 TREND:      {FORECAST_TREND_TEXT[forecast['trend']]}",
    ])
    return lines


def format_histogram(histogram: Dict[str, Any]) -> List[str]:
    lines = _section(
        "📊 MERGE TIME DISTRIBUTION",
        "Distribution of merge times into buckets.",
        "Averages lie. This reveals the 'long tail' of stuck PRs that frustrate the team.",
    )
    if _no_data(histogram):
        lines.append("   No merged PRs to analyze.")
        return lines

    for bucket in histogram['buckets']:
        lines.append(f"   {bucket['label']:<10} : {render_bar(bucket['bar_length']):<20} ({bucket['count']})")
    return lines


def format_heroes(heroes: Dict[str, Any]) -> List[str]:
    lines = _section(
        "🦸 HERO SYNDROME DETECTOR",
        "Identifies developers reviewing a disproportionate amount of code.",
        "Heroes are single points of failure. If they leave or burn out, velocity crashes.",
    )
    if heroes['status'] == 'no_reviews':
        lines.append("   No reviews found in this dataset.")
        return lines

    for entry in heroes['reviewers']:
        lines.append(f"   {entry['reviewer']}: {entry['review_count']} reviews "
                     f"({entry['share'] * 100:.1f}%) - {HERO_LEVEL_TEXT[entry['level']]}")
    lines.append(f"   Gini coefficient: {heroes['gini_coefficient']:.2f} "
                 f"(0 = even load, 1 = one reviewer does everything)")
    if heroes['status'] == 'well_distributed':
        lines.append("   ✅ Load is well-distributed. No single reviewer is a bottleneck.")
    return lines


def format_stale_prs(stale: Dict[str, Any]) -> List[str]:
    lines = _section(
        "📉 STALE PR DETECTOR (The Graveyard)",
        "Open PRs that haven't been touched in >7 days.",
        "Stale PRs rot, cause conflicts, and discourage the team.",
    )
    if stale['status'] == 'clean':
        lines.append("   ✅ Clean board! No stale PRs found.")
        return lines

    for entry in stale['stale_prs']:
        lines.append(f"   💀 #{entry['number']} ({_truncate(entry['title'], 40)}) by {entry['author']} "
                     f"- {entry['days_inactive']} days inactive")
    lines.extend(["", "   Action: Ping these authors or close the PRs."])
    return lines


def format_ghost_reviewers(ghosts: Dict[str, Any]) -> List[str]:
    lines = _section(
        "👻 GHOST REVIEWER DETECTOR",
        "Reviewers requested >48h ago who haven't responded.",
        "Silent blocking. The PR owner is waiting for a notification that never comes.",
    )
    if ghosts['status'] == 'no_ghosts':
        lines.append("   ✅ No ghosts found. Everyone is responding (or PRs are new).")
        return lines

    for entry in ghosts['ghosts']:
        lines.append(f"   👻 {entry['reviewer']}: Blocking {entry['blocked_prs']} PRs (>48h)")
    return lines


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def format_report(report: Dict[str, Any], repository: str, risk_available: bool = True) -> str:
    """
    Render a full velocity report as console text.

    Merged PR sections are shown when merged PRs were fetched. Risk
    sections are shown whenever the open PR population is known, including
    an empty backlog.

    Args:
        report: Report dictionary from PRAnalyzer.analyze()
        repository: Repository name in owner/repo format
        risk_available: False when the open PRs could not be fetched

    Returns:
        Multi-line report text
    """
    sample = report['sample']
    lines = [f"PR Velocity Report for {repository}", "=" * (24 + len(repository))]
    lines.append(f"Merged PRs: {sample['merged_prs']}   Open PRs: {sample['open_prs']}")
    if sample['outliers_excluded']:
        lines.append(f"✂️  Outlier filtering active. Reduced from {sample['merged_prs']} "
                     f"to {sample['analyzed_prs']} PRs.")
    lines.append(SEPARATOR)

    sections = []
    if sample['merged_prs']:
        sections.extend([
            format_general_stats(report['general_stats']),
            format_review_efficiency(report['review_efficiency']),
            format_size_correlation(report['size_correlation']),
            format_hotspots(report['hotspots']),
            format_long_tail(report['long_tail']),
            format_monthly_trends(report['monthly_trends']),
            format_forecast(report['forecast']),
            format_histogram(report['histogram']),
        ])
    if risk_available:
        sections.extend([
            format_heroes(report['heroes']),
            format_stale_prs(report['stale_prs']),
            format_ghost_reviewers(report['ghost_reviewers']),
        ])

    for section in sections:
        lines.extend(section)
        lines.append(SEPARATOR)

    return "\n".join(lines)
