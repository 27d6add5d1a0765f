# ==============================================================================
# Analytics Commands
# ==============================================================================
"""
Analytics commands for the wikipulse CLI.

Every command recomputes its numbers from the stored events and sessions,
so output always reflects the current contents of the store.
"""

import math
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from wikipulse.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _kv_line,
    _section_header_plain,
    get_tracking,
    parse_choice,
    print_json,
)
from wikipulse.core.models import (
    AggregationPeriod,
    AnalyticsReport,
    EventType,
    FunnelStepDefinition,
    Impact,
    InsightType,
    Timeframe,
    TimeSeriesMetric,
)

DEFAULT_FUNNEL_STEPS = [
    "Read article=article_view",
    "Start tutorial=tutorial_start",
    "Finish tutorial=tutorial_complete",
]

_INSIGHT_ICONS = {
    InsightType.POSITIVE: f"{C.BRIGHT_GREEN}{I.UP}{C.RESET}",
    InsightType.NEGATIVE: f"{C.BRIGHT_RED}{I.DOWN}{C.RESET}",
    InsightType.NEUTRAL: f"{C.DIM}{I.CIRCLE}{C.RESET}",
}

TimeframeOption = Annotated[
    str,
    typer.Option(
        "--timeframe",
        "-t",
        help="today, yesterday, last_7_days, last_30_days, last_90_days or all_time",
    ),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON for scripting")]


def _rate(value: float) -> str:
    """Format a percentage or ratio that may be infinite."""
    if math.isinf(value):
        return "∞"
    return f"{value:.1f}"


def _parse_steps(steps: Optional[list[str]]) -> list[FunnelStepDefinition]:
    """Parse repeated 'Step name=event_type' options into funnel steps."""
    definitions = []
    for raw in steps or DEFAULT_FUNNEL_STEPS:
        name, sep, event_type = raw.rpartition("=")
        if not sep:
            name = event_type
        definitions.append(
            FunnelStepDefinition(
                step_name=name.strip(),
                event_type=parse_choice(event_type.strip(), EventType, "event type"),
            )
        )
    return definitions


def _display_report(report: AnalyticsReport) -> None:
    W = BOX_WIDTH
    summary = report.summary

    print()
    print(_box_header(report.title.upper(), W))
    print(_empty_line(W))
    print(_box_line(f"  {C.DIM}{summary.start_date:%Y-%m-%d %H:%M} {I.ARROW} {summary.end_date:%Y-%m-%d %H:%M}{C.RESET}", W))
    print(_empty_line(W))

    # ── Summary ──────────────────────────────────────────
    print(_section_header_plain("Summary", W))
    print(_empty_line(W))
    print(_kv_line("Active users", f"{summary.active_users:,}", W))
    print(_kv_line("New users", f"{summary.new_users:,}", W))
    print(_kv_line("Sessions", f"{summary.total_sessions:,}", W))
    print(_kv_line("Page views", f"{summary.total_page_views:,}", W))
    print(_kv_line("Avg session duration", f"{summary.average_session_duration}s", W))
    print(_kv_line("Bounce rate", f"{summary.bounce_rate:.1f}%", W))
    print(_empty_line(W))

    # ── Conversion ──────────────────────────────────────────
    conversion = summary.conversion_rates
    print(_section_header_plain("Conversion", W))
    print(_empty_line(W))
    print(_kv_line("Article -> tutorial", f"{conversion.article_to_tutorial:.1f}%", W))
    print(_kv_line("Tutorial -> path", f"{conversion.tutorial_to_path:.1f}%", W))
    print(_kv_line("Path -> completion", f"{conversion.path_to_completion:.1f}%", W))
    print(_empty_line(W))

    # ── Insights ──────────────────────────────────────────
    print(_section_header_plain("Insights", W))
    print(_empty_line(W))
    if not report.insights:
        print(_box_line(f"  {C.DIM}No insights for this timeframe{C.RESET}", W))
    for insight in report.insights:
        impact = f"{C.BOLD}{insight.title}{C.RESET}"
        if insight.impact == Impact.HIGH:
            impact += f" {C.BRIGHT_YELLOW}(high impact){C.RESET}"
        print(_box_line(f"  {_INSIGHT_ICONS[insight.type]} {impact}", W))
    print(_empty_line(W))

    # ── Recommendations ──────────────────────────────────────────
    if report.recommendations:
        print(_section_header_plain("Recommendations", W))
        print(_empty_line(W))
        for recommendation in report.recommendations:
            text = recommendation if len(recommendation) <= W - 8 else recommendation[: W - 11] + "..."
            print(_box_line(f"  {I.BULLET} {text}", W))
        print(_empty_line(W))

    print(_box_bottom(W))
    print()


# ==============================================================================
# Commands
# ==============================================================================


def analytics_report(
    timeframe: TimeframeOption = Timeframe.LAST_7_DAYS.value,
    json_output: JsonOption = False,
) -> None:
    """Generate a report with insights and recommendations.

    Examples:
        wikipulse analytics report
        wikipulse analytics report -t last_30_days --json
    """
    window = parse_choice(timeframe, Timeframe, "timeframe")

    tracking = get_tracking()
    try:
        report = tracking.reporter.generate_analytics_report(window)
    finally:
        tracking.close()

    if json_output:
        print_json(report.model_dump(mode="json"))
        return
    _display_report(report)


def analytics_user(
    user_id: Annotated[
        Optional[str], typer.Argument(help="User identifier (default: this device's user)")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Show behavior metrics for one user."""
    tracking = get_tracking()
    try:
        user_id = user_id or tracking.sessions.resolve_user_id()
        metrics = tracking.reporter.calculate_user_behavior_metrics(user_id)
    finally:
        tracking.close()

    if json_output:
        print_json(metrics.model_dump(mode="json"))
        return

    W = BOX_WIDTH
    print()
    print(_box_header("USER BEHAVIOR", W))
    print(_empty_line(W))
    print(_kv_line("User", metrics.user_id, W))
    print(_kv_line("Sessions", metrics.total_sessions, W))
    print(_kv_line("Avg session duration", f"{metrics.average_session_duration}s", W))
    print(_kv_line("Page views", metrics.total_page_views, W))
    print(_kv_line("Articles read", metrics.total_articles_read, W))
    print(_kv_line("Tutorials completed", metrics.total_tutorials_completed, W))
    print(_kv_line("Paths completed", metrics.total_paths_completed, W))
    print(_kv_line("Searches", metrics.total_searches, W))
    print(_kv_line("Successful searches", f"{metrics.successful_search_rate:.1f}%", W))
    print(_kv_line("Bounce rate", f"{metrics.bounce_rate:.1f}%", W))
    hour = "-" if metrics.most_active_hour is None else f"{metrics.most_active_hour:02d}:00"
    print(_kv_line("Most active", f"{metrics.most_active_day_of_week.value} {hour}", W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


def analytics_funnel(
    steps: Annotated[
        Optional[list[str]],
        typer.Option("--step", "-s", help="Funnel step as 'Name=event_type' (repeatable, in order)"),
    ] = None,
    name: Annotated[str, typer.Option("--name", "-n", help="Funnel name")] = "Learning funnel",
    timeframe: TimeframeOption = Timeframe.LAST_30_DAYS.value,
    json_output: JsonOption = False,
) -> None:
    """Show a conversion funnel over a timeframe.

    Examples:
        wikipulse analytics funnel
        wikipulse analytics funnel -s "Search=search_perform" -s "Click=search_result_click"
    """
    definitions = _parse_steps(steps)
    window = parse_choice(timeframe, Timeframe, "timeframe")

    tracking = get_tracking()
    try:
        funnel = tracking.reporter.calculate_conversion_funnel(name, definitions, timeframe=window)
    finally:
        tracking.close()

    if json_output:
        print_json(funnel.model_dump(mode="json"))
        return

    console = Console()
    table = Table(title=funnel.name, show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Count", justify="right")
    table.add_column("Drop-off", justify="right")
    table.add_column("Conversion", justify="right")
    for step in funnel.steps:
        table.add_row(
            str(step.step_number),
            step.step_name,
            f"{step.count:,}",
            f"{step.drop_off:,}",
            f"{step.conversion_rate * 100:.1f}%",
        )

    print()
    console.print(table)
    print(f"  {C.BOLD}Overall:{C.RESET}  {funnel.overall_conversion * 100:.1f}%")
    print()


def analytics_timeseries(
    metric: Annotated[
        str, typer.Option("--metric", "-m", help="page_views, sessions, users or completions")
    ] = TimeSeriesMetric.PAGE_VIEWS.value,
    period: Annotated[
        str, typer.Option("--period", "-p", help="hour, day, week, month or year")
    ] = AggregationPeriod.DAY.value,
    timeframe: TimeframeOption = Timeframe.LAST_7_DAYS.value,
    json_output: JsonOption = False,
) -> None:
    """Show a metric bucketed by period."""
    series_metric = parse_choice(metric, TimeSeriesMetric, "metric")
    series_period = parse_choice(period, AggregationPeriod, "period")
    window = parse_choice(timeframe, Timeframe, "timeframe")

    tracking = get_tracking()
    try:
        series = tracking.reporter.generate_time_series_data(series_metric, series_period, window)
    finally:
        tracking.close()

    if json_output:
        print_json(series.model_dump(mode="json"))
        return

    console = Console()
    table = Table(
        title=f"{series.metric.value} per {series.period.value}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Period")
    table.add_column("Value", justify="right")
    for point in series.data:
        table.add_row(point.label, f"{point.value:,}")

    print()
    console.print(table)
    if not series.data:
        print(f"  {C.DIM}No data in this timeframe{C.RESET}")
    print()


def analytics_top(
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of items")] = 10,
    sort_by: Annotated[
        str, typer.Option("--sort", help="views, completions or completion_rate")
    ] = "views",
    json_output: JsonOption = False,
) -> None:
    """Show the most viewed content from the running content counters."""
    if sort_by not in ("views", "completions", "completion_rate"):
        raise typer.BadParameter(
            f"Invalid sort: '{sort_by}'. Choose from: views, completions, completion_rate"
        )

    tracking = get_tracking()
    try:
        metrics = tracking.reporter.get_top_content_metrics(limit=limit, sort_by=sort_by)
    finally:
        tracking.close()

    if json_output:
        print_json([item.model_dump(mode="json") for item in metrics])
        return

    console = Console()
    table = Table(title="Top Content", show_header=True, header_style="bold")
    table.add_column("Content")
    table.add_column("Type")
    table.add_column("Views", justify="right")
    table.add_column("Completions", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Viewers", justify="right")
    for item in metrics:
        table.add_row(
            item.title or item.content_id,
            item.content_type.value,
            f"{item.views:,}",
            f"{item.completions:,}",
            _rate(item.completion_rate),
            f"{item.unique_viewers:,}",
        )

    print()
    console.print(table)
    print()


def analytics_realtime(json_output: JsonOption = False) -> None:
    """Show active sessions, top pages and recent events."""
    tracking = get_tracking()
    try:
        realtime = tracking.reporter.get_realtime_analytics()
    finally:
        tracking.close()

    if json_output:
        print_json(realtime.model_dump(mode="json"))
        return

    W = BOX_WIDTH
    print()
    print(_box_header("REALTIME", W))
    print(_empty_line(W))
    print(_kv_line("Current users", realtime.current_users, W))
    print(_kv_line("Active sessions", len(realtime.active_sessions), W))
    print(_empty_line(W))

    print(_section_header_plain("Top Pages", W))
    print(_empty_line(W))
    if not realtime.top_pages:
        print(_box_line(f"  {C.DIM}No active pages{C.RESET}", W))
    for page in realtime.top_pages:
        print(_box_line(f"  {page.page:<40}{C.WHITE}{page.visitors:>6}{C.RESET} visitors", W))
    print(_empty_line(W))

    print(_section_header_plain("Recent Events", W))
    print(_empty_line(W))
    for event in realtime.recent_events[:10]:
        print(_box_line(f"  {C.DIM}{event.timestamp:%H:%M:%S}{C.RESET}  {event.type.value:<24}{event.page}", W))
    if not realtime.recent_events:
        print(_box_line(f"  {C.DIM}No events yet{C.RESET}", W))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()
