"""Wireless client records built from the RouterOS registration table."""

import json
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass

# RouterOS registration-table attribute -> record field
_ROW_FIELDS = (
    ("mac-address", "mac_address"),
    ("interface", "interface"),
    ("uptime", "uptime"),
    ("last-activity", "last_activity"),
    ("signal-to-noise", "signal_to_noise"),
)


@dataclass
class WifiClientRecord:
    """One associated wireless station, as reported by the router.

    Values are kept in RouterOS formatting (e.g. uptime "1h2m3s").
    """

    mac_address: str
    interface: str
    uptime: str
    last_activity: str
    signal_to_noise: str

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "WifiClientRecord":
        """Copy the known attributes verbatim; absent ones become ""."""
        values: dict[str, str] = {}
        for attribute, field in _ROW_FIELDS:
            value = row.get(attribute)
            values[field] = "" if value is None else str(value)
        return cls(**values)


def records_from_rows(rows: Iterable[Mapping[str, object]]) -> list[WifiClientRecord]:
    return [WifiClientRecord.from_row(row) for row in rows]


def serialize_records(records: list[WifiClientRecord]) -> str:
    """Render records as an indented JSON array, preserving order."""
    return json.dumps([asdict(r) for r in records], indent=4, ensure_ascii=False)
