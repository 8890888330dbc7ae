"""
Export service — Tabular report downloads.

Projects a ReportSnapshot into rows for one report type and renders them
as CSV (semicolon separated, UTF-8 with BOM, opens cleanly in Excel pt-BR)
or as an .xlsx workbook. No report math happens here beyond the per-row
ratios shown in the exported tables.

Rows keep typed cells (str, int, Decimal). Numbers become real numeric
cells in Excel; text taken from the database is always written as text.
"""

import csv
from datetime import date
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Iterable, Optional, Union

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
import structlog

from exceptions import InvalidReportTypeError
from models.reports import ReportPeriod, ReportSnapshot, ReportType, StatusCount
from utils.number_utils import safe_divide, safe_rate, to_money

logger = structlog.get_logger(__name__)

Cell = Union[str, int, Decimal]
Row = list[Cell]

# Section titles (rendered bold in Excel)
TITLE_METRICS = "Métricas"
TITLE_TOP_PROCEDURES = "Procedimentos mais vendidos"
TITLE_TOP_PACKAGES = "Protocolos/Pacotes mais vendidos"
TITLE_PROFESSIONALS = "Performance dos profissionais"
TITLE_DAILY = "Faturamento por dia"
TITLE_STATUS = "Distribuição por status"
TITLE_TOP_CLIENTS = "Top clientes (por faturamento)"
TITLE_CLIENT_ANALYSIS = "Análise detalhada de clientes"

SECTION_TITLES = {
    TITLE_METRICS,
    TITLE_TOP_PROCEDURES,
    TITLE_TOP_PACKAGES,
    TITLE_PROFESSIONALS,
    TITLE_DAILY,
    TITLE_STATUS,
    TITLE_TOP_CLIENTS,
    TITLE_CLIENT_ANALYSIS,
}

SHEET_TITLES = {
    ReportType.SALES: "Vendas",
    ReportType.PROFESSIONALS: "Profissionais",
    ReportType.PRODUCTS: "Produtos",
    ReportType.FINANCIAL: "Financeiro",
    ReportType.PIPELINE: "Pipeline",
    ReportType.CLIENTS: "Clientes",
}

EMPTY_LIST = "—"
CSV_SEPARATOR = ";"

# Leading characters that spreadsheet apps evaluate as a formula
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

MONEY_FORMAT = "#,##0.00"
COUNT_FORMAT = "#,##0"


def neutralize_formula(text: str) -> str:
    """Prefix a quote so a spreadsheet shows the text instead of evaluating it."""
    if text and text.startswith(FORMULA_PREFIXES):
        return "'" + text
    return text


def parse_report_type(report_type: str) -> ReportType:
    """Validate a report type string."""
    try:
        return ReportType(report_type)
    except ValueError:
        raise InvalidReportTypeError(report_type, [t.value for t in ReportType])


def export_filename(report_type: ReportType, period: ReportPeriod, extension: str, today: date) -> str:
    """relatorio-<type>-<period>-<yyyy-mm-dd>.<ext>"""
    return f"relatorio-{report_type.value}-{period.value}-{today.isoformat()}.{extension}"


class ReportExportService:
    """Service for generating report export files."""

    # ===================
    # ROWS
    # ===================

    def build_rows(
        self,
        snapshot: ReportSnapshot,
        report_type: ReportType,
        client_ids: Optional[Iterable[str]] = None,
    ) -> list[Row]:
        """
        Project a snapshot into export rows.

        Args:
            snapshot: Computed report
            report_type: Which report to export
            client_ids: Restrict the client analysis to these clients

        Returns:
            Rows of typed cells (blank rows separate sections).
            Money is Decimal, counts and percentages are int.
        """
        report_type = ReportType(report_type)

        rows: list[Row] = [
            ["Período", snapshot.period.value],
            ["Início", snapshot.range.start_iso],
            ["Fim", snapshot.range.end_iso],
            [],
        ]

        if report_type == ReportType.SALES:
            rows += self._metric_rows(snapshot, include_new_clients=True)
            rows.append([])
            rows += self._top_items_rows(snapshot)
        elif report_type == ReportType.PROFESSIONALS:
            rows += self._professional_rows(snapshot)
        elif report_type == ReportType.PRODUCTS:
            rows += self._top_items_rows(snapshot)
        elif report_type == ReportType.FINANCIAL:
            rows += self._metric_rows(snapshot, include_new_clients=False)
            rows.append([])
            rows += self._daily_rows(snapshot)
        elif report_type == ReportType.PIPELINE:
            rows += self._status_rows(snapshot.status_distribution)
        elif report_type == ReportType.CLIENTS:
            rows += self._client_rows(snapshot, client_ids)

        return rows

    def _metric_rows(self, snapshot: ReportSnapshot, include_new_clients: bool) -> list[Row]:
        metrics = snapshot.metrics
        rows: list[Row] = [
            [TITLE_METRICS],
            ["Faturamento", metrics.revenue],
            ["Ticket médio", metrics.average_ticket],
            ["Conversão (%)", metrics.conversion],
        ]
        if include_new_clients:
            rows.append(["Novos clientes", metrics.new_clients_count])
        return rows

    def _top_items_rows(self, snapshot: ReportSnapshot) -> list[Row]:
        rows: list[Row] = []
        sections = (
            (TITLE_TOP_PROCEDURES, "Procedimento", snapshot.top_procedures),
            (TITLE_TOP_PACKAGES, "Pacote", snapshot.top_packages),
        )
        for i, (title, label, items) in enumerate(sections):
            if i:
                rows.append([])
            rows.append([title])
            rows.append(["Posição", label, "Agendamentos", "Concluídos", "Conversão (%)", "Faturamento"])
            for position, item in enumerate(items, start=1):
                rows.append([
                    position,
                    item.name,
                    item.total,
                    item.completed,
                    item.conversion,
                    item.revenue,
                ])
        return rows

    def _professional_rows(self, snapshot: ReportSnapshot) -> list[Row]:
        rows: list[Row] = [
            [TITLE_PROFESSIONALS],
            ["Profissional", "Agendamentos", "Concluídos", "Procedimentos", "Pacotes", "Faturamento", "Status"],
        ]
        for p in snapshot.professional_analysis:
            rows.append([
                p.name,
                p.appointments_total,
                p.appointments_completed,
                p.procedures_sold,
                p.packages_sold,
                p.revenue,
                " | ".join(f"{s.status}: {s.total}" for s in p.status),
            ])
        return rows

    def _daily_rows(self, snapshot: ReportSnapshot) -> list[Row]:
        rows: list[Row] = [
            [TITLE_DAILY],
            ["Data", "Faturamento", "Agendamentos", "Concluídos"],
        ]
        for bucket in snapshot.daily_series:
            rows.append([
                bucket.day.isoformat(),
                bucket.revenue,
                bucket.total,
                bucket.completed,
            ])
        return rows

    def _status_rows(self, distribution: tuple[StatusCount, ...]) -> list[Row]:
        total = sum(s.total for s in distribution)
        rows: list[Row] = [
            [TITLE_STATUS],
            ["Status", "Total", "Percentual (%)"],
        ]
        for s in distribution:
            rows.append([s.status, s.total, safe_rate(s.total, total)])
        return rows

    def _client_rows(self, snapshot: ReportSnapshot, client_ids: Optional[Iterable[str]]) -> list[Row]:
        rows: list[Row] = [
            [TITLE_TOP_CLIENTS],
            ["Cliente", "Agendamentos", "Concluídos", "Faturamento"],
        ]
        for c in snapshot.top_clients:
            rows.append([c.name, c.appointments_total, c.appointments_completed, c.revenue])

        selected = set(client_ids) if client_ids else None
        analysis = [
            c for c in snapshot.client_analysis
            if selected is None or c.id in selected
        ]

        rows.append([])
        rows.append([TITLE_CLIENT_ANALYSIS])
        rows.append(["Cliente", "Concluídos", "Faturamento", "Ticket Médio", "Taxa Conclusão (%)", "Procedimentos", "Pacotes"])
        for c in analysis:
            rows.append([
                c.name,
                c.appointments_completed,
                c.revenue,
                to_money(safe_divide(c.revenue, c.appointments_completed)),
                safe_rate(c.appointments_completed, c.appointments_total),
                ", ".join(f"{p.name} ({p.total})" for p in c.procedures) or EMPTY_LIST,
                ", ".join(f"{p.name} ({p.total})" for p in c.packages) or EMPTY_LIST,
            ])
        return rows

    # ===================
    # RENDERERS
    # ===================

    def to_csv(self, rows: list[Row]) -> bytes:
        """Render rows as ';'-separated CSV, UTF-8 with BOM."""
        buf = StringIO()
        writer = csv.writer(buf, delimiter=CSV_SEPARATOR, lineterminator="\n")
        for row in rows:
            writer.writerow([
                neutralize_formula(cell) if isinstance(cell, str) else cell
                for cell in row
            ])
        return ("\ufeff" + buf.getvalue()).encode("utf-8")

    def to_excel(self, rows: list[Row], report_type: ReportType) -> BytesIO:
        """
        Render rows into a single-sheet workbook.

        Returns:
            BytesIO containing the .xlsx file
        """
        report_type = ReportType(report_type)

        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_TITLES[report_type]

        bold_font = Font(bold=True)
        widths: dict[int, int] = {}

        for row_idx, row in enumerate(rows, start=1):
            for col, value in enumerate(row, start=1):
                cell = ws.cell(row=row_idx, column=col)
                if isinstance(value, Decimal):
                    cell.value = float(value)
                    cell.number_format = MONEY_FORMAT
                elif isinstance(value, int):
                    cell.value = value
                    cell.number_format = COUNT_FORMAT
                else:
                    cell.value = value
                    # Never let names from the database become formulas
                    cell.data_type = "s"
                widths[col] = max(widths.get(col, 0), len(str(value)))
            if len(row) == 1 and row[0] in SECTION_TITLES:
                ws.cell(row=row_idx, column=1).font = bold_font

        for col, width in widths.items():
            ws.column_dimensions[get_column_letter(col)].width = min(max(width + 2, 10), 60)

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output

    def export(
        self,
        snapshot: ReportSnapshot,
        report_type: str,
        file_format: str = "csv",
        client_ids: Optional[Iterable[str]] = None,
    ) -> tuple[bytes, str, str]:
        """
        Build a downloadable export.

        Args:
            snapshot: Computed report
            report_type: sales, professionals, products, financial, pipeline or clients
            file_format: "csv" or "xlsx"
            client_ids: Restrict the client analysis to these clients

        Returns:
            Tuple of (content, media type, filename)
        """
        parsed_type = parse_report_type(report_type)
        rows = self.build_rows(snapshot, parsed_type, client_ids)

        logger.info(
            "generating_report_export",
            report_type=parsed_type.value,
            file_format=file_format,
            row_count=len(rows)
        )

        today = date.today()
        if file_format == "xlsx":
            content = self.to_excel(rows, parsed_type).getvalue()
            media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        else:
            content = self.to_csv(rows)
            media_type = "text/csv; charset=utf-8"

        filename = export_filename(parsed_type, snapshot.period, file_format, today)
        return content, media_type, filename


def get_report_export_service() -> ReportExportService:
    """Get ReportExportService instance."""
    return ReportExportService()
