from coroot.slack import REPORT_SLO, Alert, CheckResult, Report, Status, build_alert_message


def _reports():
    return [
        Report(
            name=REPORT_SLO,
            checks=[
                CheckResult("Availability", "budget burning", Status.CRITICAL),
                CheckResult("Latency", "fine", Status.OK),
            ],
        ),
        Report(name="CPU", checks=[CheckResult("Node", "high usage", Status.WARNING)]),
        Report(name="Memory", checks=[CheckResult("OOM", "none", Status.OK)]),
    ]


def _alert(**kwargs):
    base = dict(
        project_id="p1",
        application_id="default:Deployment:catalog",
        application_name="catalog",
        incident_key="inc1",
        severity=Status.CRITICAL,
        reports=_reports(),
    )
    base.update(kwargs)
    return Alert(**base)


def _header(message):
    return message["blocks"][0]["text"]["text"]


def _details(message):
    return message["attachments"][0]["blocks"][0]["text"]["text"]


def test_open_incident_message():
    message = build_alert_message("https://example.com", "alerts", _alert())
    assert message["channel"] == "alerts"
    assert message["text"] == "catalog is not meeting its SLOs"
    assert _header(message) == (
        "<https://example.com/p/p1/app/default:Deployment:catalog?incident=inc1|*catalog*>"
        " is not meeting its SLOs"
    )
    assert message["attachments"][0]["color"] == "#f44034"
    assert _details(message) == (
        "*SLO*:\n• Availability: budget burning\n*CPU*:\n• Node: high usage\n"
    )
    assert message["unfurl_links"] is False


def test_warning_incident_color():
    message = build_alert_message("https://example.com", "alerts", _alert(severity=Status.WARNING))
    assert message["attachments"][0]["color"] == "#ffdd57"


def test_resolved_incident_lists_only_slo_checks():
    message = build_alert_message("https://example.com", "alerts", _alert(resolved_at=100))
    assert message["text"] == "catalog incident resolved"
    assert _header(message).endswith(" incident resolved")
    assert message["attachments"][0]["color"] == "#23d160"
    assert _details(message) == "*SLO*:\n• Availability: budget burning\n• Latency: fine\n"


def test_no_failed_checks_gives_empty_details():
    alert = _alert(reports=[Report(name="CPU", checks=[CheckResult("Node", "ok", Status.OK)])])
    message = build_alert_message("https://example.com", "alerts", alert)
    assert _details(message) == ""
    assert message["blocks"][0]["type"] == "section"
    assert message["blocks"][0]["text"]["type"] == "mrkdwn"