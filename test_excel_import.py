"""
Unit-тесты Excel импорта: шаблон, значения по умолчанию, предупреждения
о несовместимом статусе, нумерация строк.
Запуск: python -m pytest test_excel_import.py -v
"""
import io
from datetime import datetime, timedelta

import pytest
from openpyxl import Workbook, load_workbook
from pydantic import ValidationError

from salescrm.schemas import ClientCreate
from salescrm.services.excel_import import (
    HEADERS,
    ImportFileError,
    export_clients,
    generate_template,
    parse_workbook,
    status_warning,
    validate_upload,
    XLSX_MIME_TYPE,
)
from salescrm.utils.normalizers import as_str, parse_datetime, parse_win_probability

NOW = datetime(2025, 11, 20, 9, 30)


def make_row(**values):
    """Строка по заголовкам; по умолчанию - валидный клиент."""
    base = {
        "Company Name": "Acme Corporation",
        "Contact Person": "John Smith",
        "Email": "john@acme.com",
        "Phone": "+1 234-567-8900",
        "Stage": "Qualified",
        "Value": 250000,
        "Priority": "High",
        "Country": "United States",
    }
    base.update(values)
    return [base.get(h) for h in HEADERS]


def make_xlsx(rows, headers=HEADERS) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(list(headers))
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_template_round_trip():
    """Пример строки шаблона импортируется как один валидный клиент."""
    result = parse_workbook(generate_template(), now=NOW)
    assert result.total == 1
    assert result.warnings == []

    candidate = result.clients[0]
    assert candidate.row == 2
    data = ClientCreate.model_validate(candidate.data)
    assert data.company_name == "Example Corp"
    assert data.stage == "Lead"
    assert data.status is None
    assert data.priority == "High"
    assert data.value == 100000
    assert data.service == "CRM"
    assert data.last_follow_up == datetime(2025, 11, 20)
    assert data.next_follow_up == datetime(2025, 11, 27)


def test_template_layout():
    wb = load_workbook(io.BytesIO(generate_template()))
    assert wb.sheetnames[0] == "Clients"
    assert "Instructions" in wb.sheetnames
    ws = wb["Clients"]
    assert [c.value for c in ws[1]] == HEADERS
    assert len(ws.data_validations.dataValidation) == 5


def test_incompatible_status_warns_but_imports():
    content = make_xlsx([make_row(Stage="Won", Status="In Negotiation")])
    result = parse_workbook(content, now=NOW)

    assert result.total == 1
    assert result.clients[0].data["status"] == "In Negotiation"
    assert len(result.warnings) == 1
    warning = result.warnings[0]
    assert warning["row"] == 2
    assert warning["field"] == "Status"
    assert '"Won"' in warning["warning"]
    assert "none" in warning["warning"]


def test_compatible_status_has_no_warning():
    result = parse_workbook(make_xlsx([make_row(Stage="Proposal Sent", Status="In Negotiation")]), now=NOW)
    assert result.warnings == []


def test_status_warning_lists_valid_alternatives():
    message = status_warning("Lead", "In Negotiation")
    assert "On Hold" in message and "Awaiting Response" in message
    assert status_warning("Lead", None) is None


def test_value_parsing():
    rows = [make_row(Value=-500), make_row(Value="abc"), make_row(Value=1234.6), make_row(Value="1,500")]
    values = [c.data["value"] for c in parse_workbook(make_xlsx(rows), now=NOW).clients]
    assert values == [0, 0, 1235, 1500]


def test_defaults_for_blank_and_invalid_cells():
    row = make_row(
        Stage="Negotiating",
        Status="Maybe",
        Priority="Urgent",
        Service=None,
        Source="Newsletter",
        **{
            "Responsible Person": "  ",
            "Last Follow-up": "not a date",
            "Next Follow-up": None,
            "Win Probability": "150%",
            "Estimated Close Date": "someday",
        },
    )
    data = parse_workbook(make_xlsx([row]), now=NOW).clients[0].data
    assert data["stage"] == "Lead"
    assert data["status"] is None
    assert data["priority"] == "Medium"
    assert data["service"] == "Product Development"
    assert data["responsible_person"] == "Unassigned"
    assert data["source"] == "Other"
    assert data["win_probability"] == 100
    assert data["estimated_close_date"] is None
    assert data["last_follow_up"] == NOW
    assert data["next_follow_up"] == NOW + timedelta(days=7)


def test_blank_source_stays_unset():
    data = parse_workbook(make_xlsx([make_row(Source="")]), now=NOW).clients[0].data
    assert data["source"] is None


def test_blank_rows_skipped_and_rows_numbered_from_two():
    content = make_xlsx([make_row(), [None] * len(HEADERS), make_row(**{"Company Name": "Beta"})])
    result = parse_workbook(content, now=NOW)
    assert result.total == 2
    assert [c.row for c in result.clients] == [2, 4]


def test_headers_matched_case_insensitively_in_any_order():
    headers = ["email", "COMPANY NAME", "Stage", "Unknown Column"]
    content = make_xlsx([["a@b.com", "Acme", "Demo Completed", "ignored"]], headers=headers)
    data = parse_workbook(content, now=NOW).clients[0].data
    assert data["company_name"] == "Acme"
    assert data["email"] == "a@b.com"
    assert data["stage"] == "Demo Completed"
    assert data["country"] == ""


def test_required_fields_fail_shared_validation():
    """Пустые обязательные поля отклоняются той же схемой, что и ручное редактирование."""
    data = parse_workbook(make_xlsx([make_row(Phone=None)]), now=NOW).clients[0].data
    with pytest.raises(ValidationError):
        ClientCreate.model_validate(data)


def test_unreadable_file_raises():
    with pytest.raises(ImportFileError):
        parse_workbook(b"definitely not an excel file")


def test_validate_upload():
    assert validate_upload(XLSX_MIME_TYPE, 1024) is None
    assert validate_upload("application/vnd.ms-excel", 1024) is None
    assert "Invalid file type" in validate_upload("text/csv", 1024)
    assert "too large" in validate_upload(XLSX_MIME_TYPE, 6 * 1024 * 1024)


def test_export_uses_import_layout():
    client = {
        "company_name": "Acme", "contact_person": "John", "email": "john@acme.com", "phone": "1",
        "stage": "Lead", "status": None, "value": 10, "priority": "Low", "responsible_person": "Sarah",
        "country": "India", "service": "CRM", "linkedin": "", "notes": "",
        "last_follow_up": datetime(2025, 1, 2), "next_follow_up": datetime(2025, 1, 9),
        "source": None, "industry": None, "estimated_close_date": None, "win_probability": 40,
    }
    result = parse_workbook(export_clients([client]), now=NOW)
    data = result.clients[0].data
    assert data["company_name"] == "Acme"
    assert data["last_follow_up"] == datetime(2025, 1, 2)
    assert data["win_probability"] == 40


def test_normalizer_helpers():
    assert as_str(12345.0) == "12345"
    assert as_str(None) == ""
    assert parse_datetime("2025-11-20T10:00:00Z") == datetime(2025, 11, 20, 10, 0)
    assert parse_datetime("20.11.2025") == datetime(2025, 11, 20)
    assert parse_win_probability("75%") == 75
    assert parse_win_probability("n/a") is None
    assert parse_win_probability(-5) == 0


def test_manual_and_import_paths_agree_on_aware_dates():
    raw = "2025-11-15T10:00:00+05:00"
    data = parse_workbook(make_xlsx([make_row(**{"Last Follow-up": raw})]), now=NOW).clients[0].data
    manual = ClientCreate.model_validate({**data, "last_follow_up": raw})

    assert data["last_follow_up"] == datetime(2025, 11, 15, 5, 0)
    assert manual.last_follow_up == data["last_follow_up"]
    assert manual.last_follow_up.tzinfo is None


def test_value_above_integer_column_fails_validation():
    data = parse_workbook(make_xlsx([make_row(Value=10**20)]), now=NOW).clients[0].data
    with pytest.raises(ValidationError) as exc:
        ClientCreate.model_validate(data)
    assert exc.value.errors()[0]["loc"] == ("value",)
