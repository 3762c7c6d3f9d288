from datetime import datetime, timezone
from decimal import Decimal

from alphamarket.application.services.report_service import to_csv
from alphamarket.domain.entities import CallStatus


def test_to_csv_quotes_data_rows_only():
    text = to_csv(
        ["Stock", "Action", "Target", "Published", "Date"],
        [
            ["TCS", CallStatus.ACTIVE, Decimal("120.50"), True, datetime(2026, 1, 5, 9, 15, tzinfo=timezone.utc)],
            ['Say "hi"', None, 0, False, None],
        ],
    )
    assert text.split("\n") == [
        "Stock,Action,Target,Published,Date",
        '"TCS","Active","120.50","true","2026-01-05T09:15:00+00:00"',
        '"Say ""hi""","","0","false",""',
        "",
    ]


def test_to_csv_with_no_rows():
    assert to_csv(["Plan", "Code"], []) == "Plan,Code\n"


def _download(client, advisor, report_type):
    return client.get("/api/advisor/reports/download", params={"type": report_type}, headers=advisor.headers)


def test_calls_report(client, advisor, strategy):
    client.post(
        f"/api/strategies/{strategy['id']}/calls",
        json={"stockName": "TCS", "action": "Buy", "entryPrice": 3400, "targetPrice": 3600},
        headers=advisor.headers,
    )
    r = _download(client, advisor, "Calls Report")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert r.headers["content-disposition"] == 'attachment; filename="Calls Report.csv"'

    lines = r.text.strip().split("\n")
    assert lines[0] == "Strategy,Stock,Action,Entry Price,Target,Stop Loss,Status,Date"
    assert lines[1].startswith('"Momentum Leaders","TCS","Buy","3400')
    assert '"","Active",' in lines[1]


def test_customer_and_financial_reports(client, advisor, investor, strategy):
    client.post(f"/api/strategies/{strategy['id']}/subscribe", headers=investor.headers)

    customers = _download(client, advisor, "Customer Acquisition Report").text.strip().split("\n")
    assert customers[0] == "Subscriber,Plan,EKYC Done,Risk Profiling,Status,Date"
    assert customers[1].startswith(f'"{investor.id}","{strategy["plan"]["id"]}","false","false","active",')

    financial = _download(client, advisor, "Financial Report").text.strip().split("\n")
    assert financial == ["Plan,Code,Amount,Duration Days", '"Monthly","","999.00","30"']


def test_anything_else_is_the_complaints_report(client, advisor):
    client.post(
        "/api/advisor/scores",
        json={"month": "2026-09", "beginningOfMonth": 1, "receivedDuring": 2, "resolvedDuring": 3, "pendingAtEnd": 0},
        headers=advisor.headers,
    )
    r = _download(client, advisor, "Complaints")
    assert r.text == 'Beginning,Received,Resolved,Pending,Reasons\n"1","2","3","0",""\n'


def test_reports_are_for_advisors(client, investor):
    assert _download(client, investor, "Calls Report").status_code == 403
