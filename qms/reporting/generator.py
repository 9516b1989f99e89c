"""
Report artifacts for inspection records.

Produces content only: CSV text for bulk export and self-contained HTML
documents (inline styles, no external resources) that a host can show,
save, or print to PDF. Download and print mechanics live elsewhere.

All user-supplied text is escaped: CSV quotes are doubled, and the HTML
templates render with Jinja2 autoescaping on.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from qms.analytics.kpis import compute_kpis, vendor_performance
from qms.inspection.models import InspectionRecord
from qms.inspection.scoring import CRITERIA, criteria_label, rating_for

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

DEFAULT_DATETIME_FORMAT = "%m/%d/%Y, %I:%M:%S %p"
DEFAULT_TITLE = "QMS Pro"

CSV_HEADERS = (
    "Product", "Vendor", "Inspector", "Batch ID",
    "Average Score", "Status", "Timestamp",
)
CSV_FILENAME = "all-inspections.csv"
NO_NOTES_TEXT = "No additional notes provided."

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def format_number(value: float) -> int | float:
    """Drop a trailing .0 so 8.0 prints as 8, like the dashboard does."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class ReportGenerator:
    """
    Turns records into CSV and HTML report text.

    Templates are Jinja2 files in qms/reporting/templates/ (or a custom
    directory for white-labelled reports).
    """

    def __init__(
        self,
        template_dir: str | Path | None = None,
        *,
        datetime_format: str = DEFAULT_DATETIME_FORMAT,
        title: str = DEFAULT_TITLE,
    ):
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
        self.datetime_format = datetime_format
        self.title = title
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=True,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["number"] = format_number
        self.env.filters["rating"] = rating_for
        self.env.filters["criteria_label"] = criteria_label
        self.env.filters["datetime"] = self.format_datetime

    # --- Formatting ---

    def format_datetime(self, value: int | datetime) -> str:
        """Render a ms-epoch timestamp (or datetime) in the configured format."""
        if not isinstance(value, datetime):
            value = datetime.fromtimestamp(value / 1000)
        return value.strftime(self.datetime_format)

    def _render(self, template_name: str, context: dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound:
            raise FileNotFoundError(
                f"Template not found: {template_name} "
                f"(looked in {self.template_dir})"
            )
        return template.render(**context)

    # --- CSV ---

    def csv_export(self, records: Iterable[InspectionRecord]) -> str:
        """
        All records as CSV, one row per record in the given order.

        String fields are always quoted with embedded quotes doubled;
        the average score is written as a bare number.
        """
        buffer = io.StringIO()
        buffer.write(",".join(CSV_HEADERS) + "\n")
        writer = csv.writer(
            buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n"
        )
        count = 0
        for record in records:
            writer.writerow([
                record.product,
                record.vendor,
                record.inspector,
                record.batch_id,
                format_number(record.average),
                record.manager_status.value,
                self.format_datetime(record.timestamp),
            ])
            count += 1

        logger.info("csv_exported", extra={"count": count})
        return buffer.getvalue()

    # --- HTML ---

    def detailed_report(
        self,
        record: InspectionRecord,
        generated_at: Optional[datetime] = None,
    ) -> str:
        """Printable single-inspection report."""
        criteria = [name for name in CRITERIA if name in record.scores]
        html = self._render("detailed_report.html.j2", {
            "title": self.title,
            "record": record,
            "criteria": [(name, record.scores[name]) for name in criteria],
            "notes": record.notes or NO_NOTES_TEXT,
            "generated_at": generated_at or datetime.now(),
        })
        logger.info(
            "detailed_report_generated",
            extra={"record_id": record.id, "batch_id": record.batch_id},
        )
        return html

    def summary_report(
        self,
        records: Iterable[InspectionRecord],
        now: Optional[datetime] = None,
    ) -> str:
        """Quality summary: headline KPIs plus a vendor performance table."""
        records = list(records)
        now = now or datetime.now()
        return self._render("summary_report.html.j2", {
            "title": self.title,
            "kpis": compute_kpis(records, now=now),
            "vendors": vendor_performance(records),
            "generated_at": now,
        })

    # --- Artifact names ---

    @staticmethod
    def report_filename(record: InspectionRecord) -> str:
        safe_batch = _UNSAFE_FILENAME_CHARS.sub("_", record.batch_id).strip("._")
        return f"Inspection-Report-{safe_batch or record.id}.html"

    @staticmethod
    def csv_filename() -> str:
        return CSV_FILENAME
