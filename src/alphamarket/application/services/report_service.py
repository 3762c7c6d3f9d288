# src/alphamarket/application/services/report_service.py
"""CSV downloads for the advisor dashboard. Every field is quoted."""

import csv
import io
from typing import Any, Iterable, List, Tuple

from sqlalchemy.orm import Session

from alphamarket.infrastructure.db.repository import (
    ContentRepository, PlanRepository, StrategyRepository, SubscriptionRepository,
)

CALLS_REPORT = "Calls Report"
CUSTOMER_REPORT = "Customer Acquisition Report"
FINANCIAL_REPORT = "Financial Report"


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def to_csv(header: List[str], rows: Iterable[Iterable[Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    # The header row is bare; data rows are quoted.
    buf.write(",".join(header) + "\n")
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return buf.getvalue()


class ReportService:

    def build(self, session: Session, advisor_id: str, report_type: str) -> Tuple[str, str]:
        """Returns (filename, csv text)."""
        filename = f"{report_type}.csv"

        if report_type == CALLS_REPORT:
            rows = []
            repo = StrategyRepository(session)
            for s in repo.list_by_advisor(advisor_id):
                for c in repo.list_calls(s.id):
                    rows.append([s.name, c.stock_name, c.action, c.entry_price, c.target_price, c.stop_loss, c.status, c.call_date])
            return filename, to_csv(["Strategy", "Stock", "Action", "Entry Price", "Target", "Stop Loss", "Status", "Date"], rows)

        if report_type == CUSTOMER_REPORT:
            rows = [
                [s.user_id, s.plan_id, s.ekyc_done, s.risk_profiling, s.status, s.created_at]
                for s in SubscriptionRepository(session).list_by_advisor(advisor_id)
            ]
            return filename, to_csv(["Subscriber", "Plan", "EKYC Done", "Risk Profiling", "Status", "Date"], rows)

        if report_type == FINANCIAL_REPORT:
            rows = [[p.name, p.code, p.amount, p.duration_days] for p in PlanRepository(session).list_by_advisor(advisor_id)]
            return filename, to_csv(["Plan", "Code", "Amount", "Duration Days"], rows)

        rows = [
            [s.beginning_of_month or 0, s.received_during or 0, s.resolved_during or 0, s.pending_at_end or 0, s.pendency_reasons]
            for s in ContentRepository(session).list_scores(advisor_id)
        ]
        return filename, to_csv(["Beginning", "Received", "Resolved", "Pending", "Reasons"], rows)
