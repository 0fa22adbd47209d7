"""Analytics workbook export.

Builds an ``.xlsx`` report over a caller's full request history and
returns it base64-encoded for transport in an ``analytics_download``
response.
"""

import base64
import io
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from invocursor.models.account import RequestLogEntry
from invocursor.models.response import SPREADSHEET_MIME_TYPE, DownloadData
from invocursor.persistence.repository import Repository


REQUEST_HEADERS = [
    "Timestamp",
    "Config",
    "Request",
    "Success",
    "Response Time (ms)",
]


class AnalyticsExporter(ABC):
    """Produces a downloadable report of a caller's interaction history."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the export backend can currently produce reports."""
        pass  # pragma: no cover

    @abstractmethod
    def export(self, api_key: str) -> DownloadData:
        """Builds the report for one caller."""
        pass  # pragma: no cover


def _summary_rows(entries: list[RequestLogEntry]) -> list[list]:
    total = len(entries)
    successes = sum(1 for e in entries if e.success)
    rate = round(successes / total * 100) if total else 0
    avg_ms = (
        round(sum(e.response_time_ms for e in entries) / total) if total else 0
    )
    first = entries[0].timestamp.isoformat() if entries else ""
    last = entries[-1].timestamp.isoformat() if entries else ""
    return [
        ["Total requests", total],
        ["Successful requests", successes],
        ["Success rate (%)", rate],
        ["Average response time (ms)", avg_ms],
        ["First request", first],
        ["Last request", last],
    ]


class WorkbookAnalyticsExporter(AnalyticsExporter):
    """Exports request logs from the repository as an openpyxl workbook."""

    def __init__(
        self,
        repository: Repository,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self._clock = clock

    def is_available(self) -> bool:
        return self.repository.check_health()

    def build_workbook(self, entries: list[RequestLogEntry]) -> Workbook:
        wb = Workbook()
        ws = wb.active
        ws.title = "Requests"
        ws.append(REQUEST_HEADERS)
        for cell in ws[1]:
            cell.font = Font(bold=True)
        for e in entries:
            ws.append(
                [
                    e.timestamp.isoformat(),
                    e.config,
                    e.goal,
                    "yes" if e.success else "no",
                    e.response_time_ms,
                ]
            )
        ws.column_dimensions["A"].width = 28
        ws.column_dimensions["B"].width = 16
        ws.column_dimensions["C"].width = 60
        ws.column_dimensions["D"].width = 10
        ws.column_dimensions["E"].width = 20
        for row in ws.iter_rows(min_row=2, min_col=3, max_col=3):
            for cell in row:
                cell.alignment = Alignment(wrapText=True)

        summary = wb.create_sheet("Summary")
        for row in _summary_rows(entries):
            summary.append(row)
        summary.column_dimensions["A"].width = 30
        summary.column_dimensions["B"].width = 30
        return wb

    def export(self, api_key: str) -> DownloadData:
        entries = self.repository.list_request_logs(key=api_key)
        wb = self.build_workbook(entries)

        buffer = io.BytesIO()
        wb.save(buffer)

        stamp = self._clock().strftime("%Y%m%d-%H%M%S")
        return DownloadData(
            filename=f"invocursor-analytics-{stamp}.xlsx",
            base64=base64.b64encode(buffer.getvalue()).decode("ascii"),
            mime_type=SPREADSHEET_MIME_TYPE,
        )
