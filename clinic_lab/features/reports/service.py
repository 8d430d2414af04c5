"""Lab report artifacts: PDF rendering with PyMuPDF and stored-path resolution."""

import time
from pathlib import Path, PureWindowsPath
from typing import Callable, List, Optional, Tuple

import fitz  # PyMuPDF

from clinic_lab.config import settings
from clinic_lab.core.logging import logger
from clinic_lab.features.test_requests.models import TestRequest


# ==================== Path resolution ====================
#
# Stored paths come from several generations of the service: absolute paths,
# paths relative to whatever the working directory was, and Windows paths.
# Each strategy maps a stored path to one candidate; the first that exists wins.

PathStrategy = Callable[[str, Path], Path]


def _basename(stored_path: str) -> str:
    # PureWindowsPath splits on both separators
    return PureWindowsPath(stored_path).name


def as_stored(stored_path: str, report_dir: Path) -> Path:
    return Path(stored_path)


def absolute(stored_path: str, report_dir: Path) -> Path:
    return Path(stored_path).resolve()


def cwd_uploads(stored_path: str, report_dir: Path) -> Path:
    return Path.cwd() / "uploads" / "reports" / _basename(stored_path)


def relative_uploads(stored_path: str, report_dir: Path) -> Path:
    return Path(".") / "uploads" / "reports" / _basename(stored_path)


def configured_dir(stored_path: str, report_dir: Path) -> Path:
    return report_dir / _basename(stored_path)


RESOLUTION_STRATEGIES: List[Tuple[str, PathStrategy]] = [
    ("stored", as_stored),
    ("absolute", absolute),
    ("cwd_uploads", cwd_uploads),
    ("relative_uploads", relative_uploads),
    ("configured_dir", configured_dir),
]


class ReportStore:
    """Writes report PDFs into the report directory and finds them again."""

    def __init__(
        self,
        report_dir: Optional[Path] = None,
        strategies: Optional[List[Tuple[str, PathStrategy]]] = None,
    ):
        self.report_dir = Path(report_dir) if report_dir else Path(settings.UPLOAD_DIR) / settings.REPORTS_SUBDIR
        self.strategies = strategies if strategies is not None else RESOLUTION_STRATEGIES

    def _new_path(self, request_id) -> Path:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        return self.report_dir / f"lab-report-{request_id}-{int(time.time() * 1000)}.pdf"

    def resolve(self, stored_path: Optional[str]) -> Optional[Path]:
        """Return the first existing candidate for ``stored_path``, or None."""
        if not stored_path:
            return None

        for name, strategy in self.strategies:
            candidate = strategy(stored_path, self.report_dir)
            if candidate.is_file():
                logger.debug(f"Report {stored_path} resolved via {name}: {candidate}")
                return candidate

        logger.warning(f"Report file not found for stored path {stored_path}")
        return None

    def save_upload(self, request_id, content: bytes) -> str:
        """Store a PDF uploaded by the lab and return its path."""
        path = self._new_path(request_id)
        path.write_bytes(content)
        logger.info(f"Stored uploaded report for test request {request_id}: {path}")
        return str(path)

    def delete_file(self, stored_path: Optional[str]) -> bool:
        """
        Remove a report file.

        Returns:
            bool: True if the file is gone (including never found), False if removal failed
        """
        path = self.resolve(stored_path)
        if path is None:
            return True

        try:
            path.unlink(missing_ok=True)
            logger.info(f"Deleted report file: {path}")
            return True
        except OSError as e:
            logger.error(f"Error deleting report file {path}: {e}")
            return False

    def render(self, request: TestRequest) -> str:
        """
        Render the lab report for ``request`` and return the file path.

        The whole request snapshot is used: patient, doctor, test details,
        result table, conclusion and the lab's summary.
        """
        path = self._new_path(request.id)
        doc = fitz.open()
        writer = _PageWriter(doc)

        writer.title("Laboratory Test Report")
        writer.line(f"{request.center_name} ({request.center_code})", size=10)
        writer.gap()

        writer.heading("Patient Information")
        writer.field("Name", request.patient_name)
        writer.field("Phone", request.patient_phone)
        writer.field("Address", request.patient_address)

        writer.heading("Doctor Information")
        writer.field("Requested by", request.doctor_name)

        writer.heading("Test Information")
        writer.field("Test ID", str(request.id))
        writer.field("Test type", request.test_type)
        writer.field("Description", request.test_description)
        writer.field("Urgency", request.urgency.value)
        writer.field("Sample collected", _date(request.sample_collection_actual_date))
        writer.field("Testing completed", _date(request.lab_testing_completed_date))
        writer.field("Technician", request.lab_technician_name)

        writer.heading("Results")
        if request.result_values:
            writer.line("Parameter | Value | Unit | Normal range | Status", size=10)
            for result in request.result_values:
                writer.line(
                    f"{result.parameter} | {result.value} | {result.unit or '-'} | "
                    f"{result.normal_range or '-'} | {result.status.value}",
                    size=10,
                )
        if request.test_results:
            writer.paragraph(request.test_results)

        if request.conclusion:
            writer.heading("Conclusion")
            writer.paragraph(request.conclusion)
        if request.recommendations:
            writer.heading("Recommendations")
            writer.paragraph(request.recommendations)
        if request.report_summary:
            writer.heading("Summary")
            writer.paragraph(request.report_summary)
        if request.clinical_interpretation:
            writer.heading("Clinical Interpretation")
            writer.paragraph(request.clinical_interpretation)

        writer.gap()
        writer.line(f"Generated by {request.report_generated_by_name or 'Lab'} on {_date(request.report_generated_date)}", size=9)

        try:
            doc.save(str(path))
        finally:
            doc.close()

        logger.info(f"Rendered report for test request {request.id}: {path}")
        return str(path)


def _date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


class _PageWriter:
    """Top-to-bottom text layout on A4 pages, starting a new page when full."""

    LEFT = 50
    TOP = 60
    BOTTOM = 790
    WRAP = 95

    def __init__(self, doc):
        self.doc = doc
        self.page = doc.new_page(width=595, height=842)
        self.y = self.TOP

    def line(self, text: str, size: int = 11):
        if self.y > self.BOTTOM:
            self.page = self.doc.new_page(width=595, height=842)
            self.y = self.TOP
        self.page.insert_text((self.LEFT, self.y), text, fontsize=size)
        self.y += size + 6

    def title(self, text: str):
        self.line(text, size=18)

    def heading(self, text: str):
        self.gap()
        self.line(text, size=13)

    def field(self, label: str, value: Optional[str]):
        self.line(f"{label}: {value or '-'}")

    def paragraph(self, text: str):
        for raw in text.splitlines() or [""]:
            while len(raw) > self.WRAP:
                cut = raw.rfind(" ", 0, self.WRAP)
                cut = cut if cut > 0 else self.WRAP
                self.line(raw[:cut])
                raw = raw[cut:].lstrip()
            self.line(raw)

    def gap(self):
        self.y += 8
