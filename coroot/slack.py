"""Composing Slack messages about SLO incidents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

REPORT_SLO = "SLO"

_COLOR_CRITICAL = "#f44034"
_COLOR_WARNING = "#ffdd57"
_COLOR_RESOLVED = "#23d160"


class Status(IntEnum):
    """Severity of a check, ordered from least to most severe."""

    UNKNOWN = 0
    OK = 1
    INFO = 2
    WARNING = 3
    CRITICAL = 4


@dataclass
class CheckResult:
    """The outcome of one check of a report."""

    title: str
    message: str
    status: Status = Status.OK


@dataclass
class Report:
    """A named audit report and its checks."""

    name: str
    checks: list[CheckResult] = field(default_factory=list)


@dataclass
class Alert:
    """An incident of an application, with the reports explaining it.

    A `resolved_at` of 0 means the incident is still open.
    """

    project_id: str
    application_id: str
    application_name: str
    incident_key: str
    severity: Status
    resolved_at: int = 0
    reports: list[Report] = field(default_factory=list)


def _details(reports: list[Report], only_failed: bool, only_report: str | None) -> str:
    details = ""
    for r in reports:
        if only_report is not None and r.name != only_report:
            continue
        checks = "".join(
            f"• {ch.title}: {ch.message}\n"
            for ch in r.checks
            if not only_failed or ch.status >= Status.WARNING
        )
        if checks:
            details += f"*{r.name}*:\n{checks}"
    return details


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def build_alert_message(base_url: str, channel: str, alert: Alert) -> dict[str, Any]:
    """Return the chat.postMessage payload announcing or resolving an incident."""
    app_link = (
        f"<{base_url}/p/{alert.project_id}/app/{alert.application_id}"
        f"?incident={alert.incident_key}|*{alert.application_name}*>"
    )
    if not alert.resolved_at:
        header = f"{app_link} is not meeting its SLOs"
        snippet = f"{alert.application_name} is not meeting its SLOs"
        color = _COLOR_CRITICAL if alert.severity == Status.CRITICAL else _COLOR_WARNING
        details = _details(alert.reports, only_failed=True, only_report=None)
    else:
        header = f"{app_link} incident resolved"
        snippet = f"{alert.application_name} incident resolved"
        color = _COLOR_RESOLVED
        details = _details(alert.reports, only_failed=False, only_report=REPORT_SLO)
    return {
        "channel": channel,
        "text": snippet,
        "blocks": [_section(header)],
        "attachments": [{"color": color, "blocks": [_section(details)]}],
        "unfurl_links": False,
    }