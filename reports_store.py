"""Contact/issue reports submitted by riders, persisted as one blob."""
from __future__ import annotations

import asyncio
import inspect
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from kv_store import JSONFileKeyValueStore

REPORTS_KEY = "ContactReports"
MAX_DESCRIPTION_LENGTH = 200
EMAIL_RE = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ContactReport:
    name: str
    surname: str
    email: str
    phone: Optional[str]
    report_date: datetime
    description: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "surname": self.surname,
            "email": self.email,
            "phone": self.phone,
            "reportDate": self.report_date.isoformat(),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContactReport":
        phone = data.get("phone")
        return cls(
            id=uuid.UUID(str(data["id"])),
            name=str(data["name"]),
            surname=str(data["surname"]),
            email=str(data["email"]),
            phone=None if phone is None else str(phone),
            report_date=datetime.fromisoformat(str(data["reportDate"]).replace("Z", "+00:00")),
            description=str(data["description"]),
        )


class ReportValidationError(ValueError):
    def __init__(self, fields: List[str]) -> None:
        self.fields = fields
        super().__init__(f"invalid report fields: {', '.join(fields)}")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def build_report(form: Mapping[str, Any]) -> ContactReport:
    """Validate a submitted contact form and build the report it describes.

    Fields are trimmed, the email is lowercased and a blank phone becomes None.
    The report is stamped with the submission time.
    Name, surname, a well-formed email and a description of at most
    ``MAX_DESCRIPTION_LENGTH`` characters are required.
    """
    name = _clean(form.get("name"))
    surname = _clean(form.get("surname"))
    email = _clean(form.get("email")).lower()
    phone = _clean(form.get("phone"))
    description = _clean(form.get("description"))

    invalid: List[str] = []
    if not name:
        invalid.append("name")
    if not surname:
        invalid.append("surname")
    if not email or not EMAIL_RE.fullmatch(email):
        invalid.append("email")
    if not description or len(description) > MAX_DESCRIPTION_LENGTH:
        invalid.append("description")

    if invalid:
        raise ReportValidationError(invalid)
    return ContactReport(
        name=name,
        surname=surname,
        email=email,
        phone=phone or None,
        report_date=_now(),
        description=description,
    )


class ReportStore:
    """In-memory list of reports mirrored to a key-value blob.

    The blob is read once at construction; later external edits are not seen.
    After every change the badge callable receives the new report count.
    """

    def __init__(
        self,
        kv_store: JSONFileKeyValueStore,
        key: str = REPORTS_KEY,
        set_badge_count_fn: Optional[Callable[[int], Any]] = None,
    ):
        self._kv = kv_store
        self._key = key
        self._lock = asyncio.Lock()
        self._set_badge_count = set_badge_count_fn
        self.reports: List[ContactReport] = []
        self._load_sync()

    def _load_sync(self) -> None:
        self.reports = []
        blob = self._kv.get(self._key)
        if not blob:
            return
        try:
            entries = json.loads(blob)
            if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
                raise ValueError("expected a list of report objects")
            self.reports = [ContactReport.from_dict(entry) for entry in entries]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            print(f"[reports] ignoring unreadable reports blob: {exc}")
            self.reports = []

    def _persist(self) -> None:
        self._kv.set(self._key, json.dumps([report.to_dict() for report in self.reports]))

    async def _update_badge(self) -> None:
        if self._set_badge_count is None:
            return
        try:
            result = self._set_badge_count(len(self.reports))
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            print(f"[reports] failed to update badge: {exc}")

    @property
    def count(self) -> int:
        return len(self.reports)

    def list_reports(self) -> List[Dict[str, Any]]:
        return [report.to_dict() for report in self.reports]

    async def save(self, report: ContactReport) -> None:
        async with self._lock:
            self.reports.append(report)
            self._persist()
        await self._update_badge()

    async def delete(self, index: int) -> bool:
        """Remove the report at ``index``; out-of-range indices are ignored."""
        async with self._lock:
            if index < 0 or index >= len(self.reports):
                return False
            del self.reports[index]
            self._persist()
        await self._update_badge()
        return True

    async def delete_many(self, indices: Iterable[int]) -> int:
        async with self._lock:
            drop = {index for index in indices if 0 <= index < len(self.reports)}
            self.reports = [
                report for position, report in enumerate(self.reports) if position not in drop
            ]
            self._persist()
        await self._update_badge()
        return len(drop)

    async def sync_badge(self) -> None:
        await self._update_badge()


__all__ = [
    "REPORTS_KEY",
    "MAX_DESCRIPTION_LENGTH",
    "ContactReport",
    "ReportValidationError",
    "build_report",
    "ReportStore",
]
