"""
Excel import / export of clients (openpyxl).

parse_workbook() turns the first sheet of an uploaded workbook into client
candidates plus non-fatal warnings; it never fails on an individual row.
Candidates still go through ClientCreate before they are persisted.
"""
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation

from salescrm.database.models import utcnow
from salescrm.services.reference_data import (
    STAGES, STATUSES, PRIORITIES, SOURCES, DEFAULT_SERVICES, allowed_statuses, is_status_compatible,
)
from salescrm.utils.normalizers import (
    as_str, normalize_stage, normalize_status, normalize_priority, normalize_service,
    normalize_responsible_person, normalize_source, parse_value, parse_win_probability,
    parse_datetime, parse_follow_ups,
)

log = logging.getLogger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ALLOWED_MIME_TYPES = (XLSX_MIME_TYPE, "application/vnd.ms-excel")
MAX_IMPORT_BYTES = 5 * 1024 * 1024
FIRST_DATA_ROW = 2
TEMPLATE_FILENAME = "CRM_Import_Template.xlsx"

# ClientCreate field -> column header
FIELD_HEADERS: Dict[str, str] = {
    "company_name": "Company Name",
    "contact_person": "Contact Person",
    "email": "Email",
    "phone": "Phone",
    "stage": "Stage",
    "status": "Status",
    "value": "Value",
    "priority": "Priority",
    "responsible_person": "Responsible Person",
    "country": "Country",
    "service": "Service",
    "linkedin": "LinkedIn",
    "notes": "Notes",
    "last_follow_up": "Last Follow-up",
    "next_follow_up": "Next Follow-up",
    "source": "Source",
    "industry": "Industry",
    "estimated_close_date": "Estimated Close Date",
    "win_probability": "Win Probability",
}
HEADERS: List[str] = list(FIELD_HEADERS.values())

COLUMN_WIDTHS = [20, 18, 25, 15, 22, 22, 12, 12, 18, 15, 20, 30, 30, 15, 15, 16, 18, 20, 15]

SAMPLE_ROW = {
    "Company Name": "Example Corp",
    "Contact Person": "John Doe",
    "Email": "john@example.com",
    "Phone": "+1-555-0123",
    "Stage": "Lead",
    "Status": None,
    "Value": 100000,
    "Priority": "High",
    "Responsible Person": "Sarah Johnson",
    "Country": "United States",
    "Service": "CRM",
    "LinkedIn": "https://linkedin.com/in/johndoe",
    "Notes": "Initial contact",
    "Last Follow-up": "2025-11-20",
    "Next Follow-up": "2025-11-27",
    "Source": "Website",
    "Industry": "Technology",
    "Estimated Close Date": "2026-01-31",
    "Win Probability": "20%",
}

INSTRUCTIONS = [
    "CRM Import Template Instructions",
    "",
    "Stage Options (Required):",
    ", ".join(STAGES),
    "",
    "Status Options (Optional - leave empty if not applicable):",
    ", ".join(STATUSES),
    "Each stage accepts only some statuses; mismatches are imported with a warning.",
    "",
    "Priority Options (Required):",
    ", ".join(PRIORITIES),
    "",
    "Service Options:",
    ", ".join(DEFAULT_SERVICES),
    "Note: You can also use custom service names - they will be added to the system automatically",
    "",
    "Source Options (Optional):",
    ", ".join(SOURCES),
    "",
    "Country (Required - must match a known country name for currency detection)",
    "",
    "Date Format: YYYY-MM-DD (e.g., 2025-11-20)",
    "Value: Numeric amount in the local currency of the selected country (e.g., 100000).",
    "Win Probability: 0-100, a trailing % is allowed (e.g., 75%).",
    "",
    "Notes:",
    "- Delete the sample row before importing your data",
    "- Company Name, Contact Person, Email, Phone and Country are required",
    "- Email must be valid format",
    "- Empty Last/Next Follow-up default to today / today + 7 days",
]


class ImportFileError(Exception):
    """The upload is not a readable workbook."""


@dataclass
class ImportCandidate:
    row: int
    data: dict


@dataclass
class ParseResult:
    clients: List[ImportCandidate] = field(default_factory=list)
    warnings: List[dict] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.clients)


def validate_upload(content_type: Optional[str], size: int, max_bytes: int = MAX_IMPORT_BYTES) -> Optional[str]:
    """Error message for an unacceptable upload, None if it is fine."""
    if content_type not in ALLOWED_MIME_TYPES:
        return "Invalid file type. Please upload an Excel file (.xlsx or .xls)"
    if size > max_bytes:
        return f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
    return None


def status_warning(stage: str, status: Optional[str]) -> Optional[str]:
    """Message for a status the stage does not accept, None when compatible."""
    if is_status_compatible(stage, status):
        return None
    valid = allowed_statuses(stage)
    if not valid:
        return f'Status "{status}" is not valid for stage "{stage}". Stage "{stage}" accepts no status (valid: none).'
    return f'Status "{status}" is not valid for stage "{stage}". Valid statuses: {", ".join(valid)}.'


def _row_to_candidate(values: Dict[str, object], now: datetime) -> dict:
    last_follow_up, next_follow_up = parse_follow_ups(
        values.get("Last Follow-up"), values.get("Next Follow-up"), now=now,
    )
    return {
        "company_name": as_str(values.get("Company Name")),
        "contact_person": as_str(values.get("Contact Person")),
        "email": as_str(values.get("Email")),
        "phone": as_str(values.get("Phone")),
        "stage": normalize_stage(values.get("Stage")),
        "status": normalize_status(values.get("Status")),
        "value": parse_value(values.get("Value")),
        "priority": normalize_priority(values.get("Priority")),
        "responsible_person": normalize_responsible_person(values.get("Responsible Person")),
        "country": as_str(values.get("Country")),
        "service": normalize_service(values.get("Service")),
        "linkedin": as_str(values.get("LinkedIn")),
        "notes": as_str(values.get("Notes")),
        "last_follow_up": last_follow_up,
        "next_follow_up": next_follow_up,
        "source": normalize_source(values.get("Source")),
        "industry": as_str(values.get("Industry")) or None,
        "estimated_close_date": parse_datetime(values.get("Estimated Close Date")),
        "win_probability": parse_win_probability(values.get("Win Probability")),
    }


def parse_workbook(content: bytes, now: Optional[datetime] = None) -> ParseResult:
    """
    Read the first sheet: row 1 holds headers (matched case-insensitively, any
    order, unknown columns ignored), data starts at row 2. Blank rows are skipped.
    """
    try:
        wb = load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception as e:
        raise ImportFileError(f"Unable to read Excel file: {e}") from e

    now = now or utcnow()
    result = ParseResult()
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            return result

        known = {h.lower(): h for h in HEADERS}
        columns: Dict[int, str] = {}
        for idx, cell in enumerate(header_row):
            name = known.get(as_str(cell).lower())
            if name and name not in columns.values():
                columns[idx] = name

        for row_number, row in enumerate(rows, start=FIRST_DATA_ROW):
            if row is None or all(as_str(v) == "" for v in row):
                continue
            values = {name: row[idx] for idx, name in columns.items() if idx < len(row)}
            candidate = _row_to_candidate(values, now)
            result.clients.append(ImportCandidate(row=row_number, data=candidate))

            warning = status_warning(candidate["stage"], candidate["status"])
            if warning:
                result.warnings.append({"row": row_number, "field": "Status", "warning": warning})
    finally:
        wb.close()

    log.info("[IMPORT] Parsed %s rows (%s warnings)", result.total, len(result.warnings))
    return result


def _list_validation(formula: str, *, strict: bool = True) -> DataValidation:
    dv = DataValidation(type="list", formula1=formula, allow_blank=True)
    if not strict:
        # свои значения разрешены (например, новая услуга)
        dv.showErrorMessage = False
    return dv


def _write_list(ws, column: int, title: str, values: List[str]) -> str:
    ws.cell(row=1, column=column, value=title)
    for i, value in enumerate(values, start=2):
        ws.cell(row=i, column=column, value=value)
    letter = get_column_letter(column)
    return f"Lists!${letter}$2:${letter}${len(values) + 1}"


def _style_header(ws) -> None:
    fill = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = fill


def _new_clients_sheet(wb: Workbook):
    ws = wb.active
    ws.title = "Clients"
    ws.append(HEADERS)
    _style_header(ws)
    for i, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width
    ws.freeze_panes = "A2"
    return ws


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def generate_template() -> bytes:
    """Clients sheet (header + one sample row + dropdowns), Instructions sheet."""
    wb = Workbook()
    ws = _new_clients_sheet(wb)
    ws.append([SAMPLE_ROW[h] for h in HEADERS])

    lists = wb.create_sheet("Lists")
    ranges = {
        "Stage": _write_list(lists, 1, "Stage", STAGES),
        "Status": _write_list(lists, 2, "Status", STATUSES),
        "Priority": _write_list(lists, 3, "Priority", PRIORITIES),
        "Service": _write_list(lists, 4, "Service", DEFAULT_SERVICES),
        "Source": _write_list(lists, 5, "Source", SOURCES),
    }
    lists.sheet_state = "hidden"

    for header, formula in ranges.items():
        dv = _list_validation(formula, strict=header != "Service")
        letter = get_column_letter(HEADERS.index(header) + 1)
        dv.add(f"{letter}2:{letter}1000")
        ws.add_data_validation(dv)

    info = wb.create_sheet("Instructions")
    for line in INSTRUCTIONS:
        info.append([line])
    info["A1"].font = Font(bold=True, size=14)
    info.column_dimensions["A"].width = 100

    return _to_bytes(wb)


def _date_cell(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%Y-%m-%d") if value else None


def export_clients(clients: List[dict]) -> bytes:
    """Clients (client_to_dict output) in the import column layout."""
    wb = Workbook()
    ws = _new_clients_sheet(wb)
    for c in clients:
        win = c.get("win_probability")
        ws.append([
            c["company_name"],
            c["contact_person"],
            c["email"],
            c["phone"],
            c["stage"],
            c.get("status"),
            c["value"],
            c["priority"],
            c["responsible_person"],
            c["country"],
            c["service"],
            c.get("linkedin") or None,
            c.get("notes") or None,
            _date_cell(c.get("last_follow_up")),
            _date_cell(c.get("next_follow_up")),
            c.get("source"),
            c.get("industry"),
            _date_cell(c.get("estimated_close_date")),
            f"{win}%" if win is not None else None,
        ])
    log.info("[IMPORT] Exported %s clients", len(clients))
    return _to_bytes(wb)
