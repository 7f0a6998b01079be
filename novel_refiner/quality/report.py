"""Markdown report for the quality alert engine."""

from typing import TYPE_CHECKING

from .alerts import QualityAlert, Severity

if TYPE_CHECKING:
    from .alerts import QualityAlertEngine

SEVERITY_HEADINGS = [
    (Severity.CRITICAL, "Critical"),
    (Severity.HIGH, "High"),
    (Severity.MEDIUM, "Medium"),
    (Severity.LOW, "Low"),
]


def _chapters(alert: QualityAlert) -> str:
    return ", ".join(str(c) for c in alert.affected_chapters)


def _render_alert(alert: QualityAlert, severity: Severity) -> list[str]:
    # Critical alerts carry full detail, lower severities progressively less
    if severity == Severity.LOW:
        return [f"- {alert.title}"]
    if severity == Severity.MEDIUM:
        return [f"- {alert.title}: {alert.description}"]

    lines = [
        "",
        f"**{alert.title}**",
        f"- {alert.description}",
        f"- Affected chapters: {_chapters(alert)}",
    ]
    if severity == Severity.CRITICAL:
        lines.append(f"- Priority: {alert.priority}/10")
        if alert.suggestions:
            lines.append("- Suggestions:")
            lines.extend(f"  - {s}" for s in alert.suggestions)
    return lines


def generate_alert_report(engine: "QualityAlertEngine") -> str:
    stats = engine.get_alert_stats()
    active = engine.get_active_alerts()

    lines = [
        "# Quality Alert Report",
        "",
        "## Statistics",
        f"- Total alerts: {stats.total}",
        f"- Active alerts: {stats.active_count}",
        f"- Chapters tracked: {len(engine.metrics_history)}",
        "",
        "### By type",
    ]
    lines += [f"- {name}: {count}" for name, count in stats.by_type.items()] or ["- none"]
    lines += ["", "### By severity"]
    lines += [f"- {name}: {count}" for name, count in stats.by_severity.items()] or ["- none"]
    lines.append("")

    if not active:
        lines += ["## Active Alerts", "", "No active alerts."]
        return "\n".join(lines)

    lines += ["## Active Alerts", ""]
    for severity, heading in SEVERITY_HEADINGS:
        group = [a for a in active if a.severity == severity]
        if not group:
            continue
        lines.append(f"### {heading}")
        for alert in group:
            lines.extend(_render_alert(alert, severity))
        lines.append("")

    return "\n".join(lines).rstrip("\n")
