"""
Tests for report_export_service — CSV and Excel report downloads.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from openpyxl import load_workbook

from exceptions import InvalidReportTypeError
from models.reports import ReportPeriod, ReportType
from services.report_data_source import ReportDataSource
from services.report_export_service import (
    ReportExportService,
    TITLE_CLIENT_ANALYSIS,
    TITLE_DAILY,
    TITLE_METRICS,
    TITLE_STATUS,
    TITLE_TOP_PROCEDURES,
    export_filename,
    get_report_export_service,
    neutralize_formula,
    parse_report_type,
)
from services.reports_service import ReportsService


# ===================
# FIXTURES
# ===================

@pytest.fixture
def snapshot(report_settings, fixed_clock, appointment_row):
    """Week snapshot with two clients, one of them with a comma in the name."""
    source = MagicMock(spec=ReportDataSource)
    source.fetch_appointments.return_value = [
        appointment_row(id="a1", valor=200, procedimentos_ids=["p1"], paciente_id="cli-1"),
        appointment_row(id="a2", valor=100, procedimentos_ids=["p1"], paciente_id="cli-1", status="cancelado"),
        appointment_row(id="a3", valor=80, procedimentos_ids=["p2"], paciente_id="cli-2"),
    ]
    source.count_new_clients.return_value = 2
    source.resolve_plan_packages.return_value = {}
    names = {
        "procedures": {"p1": "Limpeza", "p2": "Peeling"},
        "packages": {},
        "professionals": {"pro-1": "Dra. Ana"},
        "clients": {"cli-1": "Souza, Maria", "cli-2": "João"},
    }
    source.resolve_names.side_effect = lambda tenant_id, dimension, ids: {
        i: names[dimension][i] for i in ids if i in names[dimension]
    }
    service = ReportsService(data_source=source, settings=report_settings, clock=fixed_clock)
    return service.compute("tenant-1", ReportPeriod.WEEK)


@pytest.fixture
def export_service():
    return ReportExportService()


def first_cells(rows):
    return [row[0] for row in rows if row]


# ===================
# HELPERS
# ===================

class TestNeutralizeFormula:
    """Tests for neutralize_formula."""

    def test_plain(self):
        assert neutralize_formula("Limpeza") == "Limpeza"

    @pytest.mark.parametrize("text", ["=1+1", "+55 11", "-cmd", "@SUM(A1)"])
    def test_formula_prefixed(self, text):
        assert neutralize_formula(text) == "'" + text

    def test_em_dash_untouched(self):
        assert neutralize_formula("—") == "—"

    def test_empty(self):
        assert neutralize_formula("") == ""


class TestParseReportType:
    """Tests for parse_report_type and export_filename."""

    def test_valid(self):
        assert parse_report_type("pipeline") == ReportType.PIPELINE

    def test_invalid(self):
        with pytest.raises(InvalidReportTypeError) as exc:
            parse_report_type("inventory")

        assert exc.value.status_code == 422
        assert "sales" in exc.value.details["valid"]

    def test_filename(self):
        name = export_filename(ReportType.SALES, ReportPeriod.MONTH, "csv", date(2024, 3, 15))

        assert name == "relatorio-sales-month-2024-03-15.csv"


# ===================
# ROWS
# ===================

class TestBuildRows:
    """Tests for build_rows."""

    def test_header_block(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.SALES)

        assert rows[0] == ["Período", "week"]
        assert rows[1] == ["Início", snapshot.range.start_iso]
        assert rows[2] == ["Fim", snapshot.range.end_iso]
        assert rows[3] == []

    def test_sales(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.SALES)

        assert TITLE_METRICS in first_cells(rows)
        assert TITLE_TOP_PROCEDURES in first_cells(rows)
        assert ["Faturamento", Decimal("280.00")] in rows
        assert ["Novos clientes", 2] in rows

    def test_products_positions(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.PRODUCTS)

        assert [1, "Limpeza", 2, 1, 50, Decimal("200.00")] in rows
        assert [2, "Peeling", 1, 1, 100, Decimal("80.00")] in rows

    def test_financial_has_daily_rows(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.FINANCIAL)

        assert TITLE_DAILY in first_cells(rows)
        assert ["Novos clientes", 2] not in rows
        daily = [row for row in rows if row and str(row[0]).startswith("2024-03-")]
        assert len(daily) == 7
        assert all(isinstance(row[1], Decimal) for row in daily)

    def test_pipeline(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.PIPELINE)

        assert TITLE_STATUS in first_cells(rows)
        assert ["Status", "Total", "Percentual (%)"] in rows
        assert ["concluido", 2, 67] in rows
        assert ["cancelado", 1, 33] in rows

    def test_professionals(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.PROFESSIONALS)

        ana = next(row for row in rows if row and row[0] == "Dra. Ana")
        assert ana[1:6] == [3, 2, 2, 0, Decimal("280.00")]
        assert "concluido: 2" in ana[6]

    def test_clients(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.CLIENTS)

        assert TITLE_CLIENT_ANALYSIS in first_cells(rows)
        maria = [row for row in rows if row and row[0] == "Souza, Maria"][-1]
        assert maria == ["Souza, Maria", 1, Decimal("200.00"), Decimal("200.00"), 50, "Limpeza (2)", "—"]

    def test_clients_filtered(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.CLIENTS, client_ids=["cli-2"])

        analysis = rows[rows.index([TITLE_CLIENT_ANALYSIS]) + 2:]
        assert [row[0] for row in analysis] == ["João"]


# ===================
# RENDERERS
# ===================

class TestRenderers:
    """Tests for to_csv, to_excel and export."""

    def test_csv_bom_and_separator(self, export_service, snapshot):
        content = export_service.to_csv(export_service.build_rows(snapshot, ReportType.CLIENTS))

        text = content.decode("utf-8")
        assert text.startswith("\ufeff")
        assert "Período;week" in text
        assert "Souza, Maria;1;200.00;200.00;50;Limpeza (2);\u2014" in text

    def test_csv_blank_rows_preserved(self, export_service):
        content = export_service.to_csv([["a", "b"], [], ["c"]])

        assert content.decode("utf-8") == "\ufeffa;b\n\nc\n"

    def test_csv_quotes_separator_and_quotes(self, export_service):
        content = export_service.to_csv([['Clinica; "Centro"', 1]])

        assert content.decode("utf-8") == '\ufeff"Clinica; ""Centro""";1\n'

    def test_csv_formula_name_prefixed(self, export_service):
        content = export_service.to_csv([['=HYPERLINK("http://evil","x")', Decimal("10.00")]])

        text = content.decode("utf-8")
        assert text.startswith("\ufeff\"'=HYPERLINK(")
        assert text.endswith(";10.00\n")

    def test_csv_negative_number_not_prefixed(self, export_service):
        content = export_service.to_csv([["Saldo", -5]])

        assert content.decode("utf-8") == "\ufeffSaldo;-5\n"

    def test_excel_loads(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.SALES)

        output = export_service.to_excel(rows, ReportType.SALES)
        wb = load_workbook(output)
        ws = wb.active

        assert ws.title == "Vendas"
        assert ws["A1"].value == "Período"
        assert ws["B1"].value == "week"

    def test_excel_section_titles_bold(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.SALES)

        ws = load_workbook(export_service.to_excel(rows, ReportType.SALES)).active
        title_cells = [cell for cell in ws["A"] if cell.value == TITLE_METRICS]

        assert title_cells and title_cells[0].font.bold

    def test_excel_numbers_are_numeric(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.SALES)

        ws = load_workbook(export_service.to_excel(rows, ReportType.SALES)).active
        revenue = next(row for row in ws.iter_rows() if row[0].value == "Faturamento")[1]
        new_clients = next(row for row in ws.iter_rows() if row[0].value == "Novos clientes")[1]

        assert revenue.data_type == "n"
        assert revenue.value == 280
        assert revenue.number_format == "#,##0.00"
        assert new_clients.data_type == "n"
        assert new_clients.value == 2
        assert new_clients.number_format == "#,##0"

    def test_excel_ranking_position_is_numeric(self, export_service, snapshot):
        rows = export_service.build_rows(snapshot, ReportType.PRODUCTS)

        ws = load_workbook(export_service.to_excel(rows, ReportType.PRODUCTS)).active
        limpeza = next(row for row in ws.iter_rows() if row[1].value == "Limpeza")

        assert [cell.value for cell in limpeza] == [1, "Limpeza", 2, 1, 50, 200]
        assert all(cell.data_type == "n" for cell in limpeza if cell.column != 2)

    def test_excel_formula_like_name_stays_text(self, export_service):
        rows = [["Cliente", "Faturamento"], ['=HYPERLINK("http://evil","x")', Decimal("10.00")]]

        ws = load_workbook(export_service.to_excel(rows, ReportType.CLIENTS)).active

        assert ws["A2"].data_type == "s"
        assert ws["A2"].value == '=HYPERLINK("http://evil","x")'
        assert ws["B2"].value == 10

    def test_export_csv(self, export_service, snapshot):
        content, media_type, filename = export_service.export(snapshot, "financial")

        assert media_type.startswith("text/csv")
        assert filename.startswith("relatorio-financial-week-")
        assert filename.endswith(".csv")
        assert content.startswith("\ufeff".encode("utf-8"))

    def test_export_xlsx(self, export_service, snapshot):
        content, media_type, filename = export_service.export(snapshot, "pipeline", file_format="xlsx")

        assert filename.endswith(".xlsx")
        assert media_type == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert load_workbook(BytesIO(content)).active.title == "Pipeline"

    def test_export_invalid_type(self, export_service, snapshot):
        with pytest.raises(InvalidReportTypeError):
            export_service.export(snapshot, "nope")

    def test_get_report_export_service(self):
        assert isinstance(get_report_export_service(), ReportExportService)
