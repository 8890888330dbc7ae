"""
Row parsers module.

Turn raw Supabase rows into typed records.
"""

from parsers.appointment_parser import (
    ParsedAppointment,
    parse_appointment,
    parse_appointments,
)

__all__ = [
    "ParsedAppointment",
    "parse_appointment",
    "parse_appointments",
]
