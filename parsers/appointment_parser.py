"""
Appointment record parser.

Converts raw agendamentos_clinica rows (as returned by Supabase) into one
canonical, typed record shape. Legacy rows are inconsistent:
- procedures may be linked through procedimento_id, procedimentos_ids or both
- packages may be linked directly (protocolos_pacotes_ids) or only through
  the treatment plan (plano_tratamento_id -> protocolo_pacote_id)
- valor may be NULL, a number or a numeric string

Everything downstream works on ParsedAppointment only.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

import structlog

from models.reports import AppointmentStatus, UNKNOWN_STATUS
from utils.number_utils import ZERO, safe_number

logger = structlog.get_logger(__name__)

# Canonical field -> accepted source column names, first match wins
FIELD_ALIASES = {
    "id": ("id",),
    "client_id": ("paciente_id", "client_id"),
    "professional_id": ("profissional_id", "professional_id"),
    "plan_id": ("plano_tratamento_id", "plan_id"),
    "procedure_id": ("procedimento_id", "procedure_id"),
    "procedure_ids": ("procedimentos_ids", "procedure_ids"),
    "package_ids": ("protocolos_pacotes_ids", "package_ids"),
    "status": ("status",),
    "value": ("valor", "value"),
    "occurs_at": ("data_inicio", "occurs_at"),
}

# Columns requested from agendamentos_clinica
APPOINTMENT_COLUMNS = (
    "id, paciente_id, profissional_id, plano_tratamento_id, procedimento_id, "
    "procedimentos_ids, protocolos_pacotes_ids, status, valor, data_inicio"
)


@dataclass(frozen=True)
class ParsedAppointment:
    """Canonical appointment ready for aggregation."""
    id: str
    occurs_at: datetime
    status: str
    value: Decimal
    client_id: Optional[str] = None
    professional_id: Optional[str] = None
    plan_id: Optional[str] = None
    procedure_ids: tuple[str, ...] = ()
    package_ids: tuple[str, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.status == AppointmentStatus.COMPLETED.value

    @property
    def realized_value(self) -> Decimal:
        """Value counted as revenue: only completed appointments earn."""
        return self.value if self.is_completed else ZERO


def _field(row: Mapping[str, Any], name: str) -> Any:
    for column in FIELD_ALIASES[name]:
        value = row.get(column)
        if value is not None:
            return value
    return None


def _optional_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _id_list(value: Any) -> list[str]:
    """Accept a list/tuple/set of ids or a single id."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    ids = []
    for item in items:
        item_id = _optional_id(item)
        if item_id:
            ids.append(item_id)
    return ids


def _dedupe(ids: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicates, keep first-seen order."""
    return tuple(dict.fromkeys(ids))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a Supabase timestamp.

    Accepts datetime objects and ISO-8601 strings (with or without Z).
    Naive values are taken as UTC. Returns None when unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def collect_plan_ids(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Distinct treatment plan ids referenced by the rows, first-seen order."""
    plan_ids = (_optional_id(_field(row, "plan_id")) for row in rows)
    return list(_dedupe(plan_id for plan_id in plan_ids if plan_id))


def parse_appointment(
    row: Mapping[str, Any],
    plan_packages: Optional[Mapping[str, str]] = None,
) -> Optional[ParsedAppointment]:
    """
    Parse one raw row.

    Args:
        row: Raw agendamentos_clinica row
        plan_packages: plan_id -> package_id map for indirect package links

    Returns:
        ParsedAppointment, or None if the row has no id or no usable start time
    """
    appointment_id = _optional_id(_field(row, "id"))
    occurs_at = parse_timestamp(_field(row, "occurs_at"))
    if appointment_id is None or occurs_at is None:
        return None

    procedure_ids = _dedupe(
        _id_list(_field(row, "procedure_ids")) + _id_list(_field(row, "procedure_id"))
    )

    plan_id = _optional_id(_field(row, "plan_id"))
    package_ids = _id_list(_field(row, "package_ids"))
    if plan_id and plan_packages:
        plan_package = plan_packages.get(plan_id)
        if plan_package:
            package_ids.append(plan_package)

    status = _optional_id(_field(row, "status")) or UNKNOWN_STATUS

    value = safe_number(_field(row, "value"))
    if value < 0:
        value = ZERO

    return ParsedAppointment(
        id=appointment_id,
        occurs_at=occurs_at,
        status=status,
        value=value,
        client_id=_optional_id(_field(row, "client_id")),
        professional_id=_optional_id(_field(row, "professional_id")),
        plan_id=plan_id,
        procedure_ids=procedure_ids,
        package_ids=_dedupe(package_ids),
    )


def parse_appointments(
    rows: Iterable[Mapping[str, Any]],
    plan_packages: Optional[Mapping[str, str]] = None,
) -> list[ParsedAppointment]:
    """
    Parse raw rows, skipping rows without an id or a start time.

    Args:
        rows: Raw agendamentos_clinica rows
        plan_packages: plan_id -> package_id map

    Returns:
        Parsed appointments in input order
    """
    parsed: list[ParsedAppointment] = []
    skipped = 0

    for row in rows:
        appointment = parse_appointment(row, plan_packages)
        if appointment is None:
            skipped += 1
            continue
        parsed.append(appointment)

    if skipped:
        logger.warning(
            "appointments_skipped",
            skipped=skipped,
            reason="missing id or data_inicio"
        )

    return parsed
