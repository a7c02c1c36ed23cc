"""
Aggregation and presentation of stored deep-link analytics.
"""
from collections import Counter
from datetime import date, timedelta
from io import BytesIO
from typing import Iterable, List, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import matplotlib.dates as mdates

from freshlink.modules.analytics.domain.models import AnalyticsSummary, DeepLinkAnalytics
from freshlink.modules.deeplinks.utils.sanitizer import sanitize_id


DEFAULT_TOP_N = 5


def _top(counter: Counter, limit: int) -> List[tuple[str, int]]:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:limit]


def summarize_records(
    records: Iterable[DeepLinkAnalytics],
    *,
    start_date: date,
    end_date: date,
    top_n: int = DEFAULT_TOP_N,
) -> AnalyticsSummary:
    """
    Reduce analytics records to a summary.

    Pure function: no I/O, input records are not modified.

    Args:
        records: Records retrieved for the window
        start_date: First day of the window (inclusive)
        end_date: Last day of the window (inclusive)
        top_n: Number of shops/barbers to keep in the rankings

    Returns:
        Summary with counts, error rate (percent) and average processing time (ms)
    """
    actions: Counter = Counter()
    shops: Counter = Counter()
    barbers: Counter = Counter()
    days: Counter = Counter()
    total = 0
    errors = 0
    processing_total = 0.0

    for record in records:
        total += 1
        actions[record.deep_link.action.value] += 1
        if record.error is not None:
            errors += 1
        processing_total += record.processing_time
        shop = sanitize_id(record.deep_link.params.get("shop"))
        if shop:
            shops[shop] += 1
        barber = sanitize_id(record.deep_link.params.get("barber"))
        if barber:
            barbers[barber] += 1
        days[record.day] += 1

    return AnalyticsSummary(
        start_date=start_date,
        end_date=end_date,
        total_deep_links=total,
        action_counts=dict(sorted(actions.items())),
        error_rate=(errors / total * 100) if total else 0.0,
        average_processing_time=(processing_total / total) if total else 0.0,
        top_shops=_top(shops, top_n),
        top_barbers=_top(barbers, top_n),
        daily_stats=dict(sorted(days.items())),
    )


def format_summary_text(summary: AnalyticsSummary) -> str:
    if not summary.total_deep_links:
        return "No data available for the specified period."

    lines = [
        f"📊 Deep links {summary.start_date.isoformat()} to {summary.end_date.isoformat()}\n",
        f"Total: {summary.total_deep_links}",
        f"Error rate: {summary.error_rate:.1f}%",
        f"Average processing time: {summary.average_processing_time:.1f}ms",
        "\nBy action:",
    ]
    for action, count in summary.action_counts.items():
        lines.append(f"  {action}: {count}")

    if summary.top_shops:
        lines.append("\n🏪 Top shops:")
        lines.extend(f"  {shop}: {count}" for shop, count in summary.top_shops)
    if summary.top_barbers:
        lines.append("\n💈 Top barbers:")
        lines.extend(f"  {barber}: {count}" for barber, count in summary.top_barbers)

    return "\n".join(lines)


def render_daily_chart(summary: AnalyticsSummary, title: Optional[str] = None) -> BytesIO:
    """
    Render the per-day counts of a summary as a PNG line chart.

    Days without records in the window are drawn as zero.

    Returns:
        BytesIO buffer with PNG image
    """
    dates = []
    values = []
    current = summary.start_date
    while current <= summary.end_date:
        dates.append(current)
        values.append(summary.daily_stats.get(current.isoformat(), 0))
        current += timedelta(days=1)

    fig, ax = plt.subplots(figsize=(12, 6))
    ax.plot(dates, values, marker='o', label='Deep links', color='blue', linewidth=2)

    ax.xaxis.set_major_formatter(mdates.DateFormatter('%d.%m'))
    ax.xaxis.set_major_locator(mdates.DayLocator(interval=max(1, len(dates) // 10)))
    plt.xticks(rotation=45, ha='right')

    ax.set_xlabel('Date')
    ax.set_ylabel('Count')
    ax.set_title(title or "Deep link activity", fontsize=14, fontweight='bold')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    buffer = BytesIO()
    plt.savefig(buffer, format='png', dpi=150, bbox_inches='tight')
    buffer.seek(0)
    plt.close(fig)

    return buffer
