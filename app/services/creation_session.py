"""
Per-flow state for creating one event
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, Optional

from app.core.errors import FieldValidationError
from app.schemas.event import DRAFT_FIELDS, validate_draft
from app.services.event_submitter import (
    TITLE_TAKEN_MESSAGE,
    CreationContext,
    EventSubmitter,
    SubmissionResult,
    SubmissionStatus,
)
from app.services.repositories import EventStore
from app.services.slugs import generate_slug, normalize_title
from app.services.uniqueness import ProbeState, TitleUniquenessChecker
from app.services.validation import GateDecision, ValidationGate, field_errors_for

logger = logging.getLogger(__name__)

INCOMPLETE_FORM_MESSAGE = "Please complete the form before creating the event."

TIMEZONES = [
    {"value": "-10:00", "name": "(GMT -10:00) Hawaii"},
    {"value": "-09:00", "name": "(GMT -9:00) Alaska"},
    {"value": "-08:00", "name": "(GMT -8:00) Pacific Time (US & Canada)"},
    {"value": "-07:00", "name": "(GMT -7:00) Mountain Time (US & Canada)"},
    {"value": "-06:00", "name": "(GMT -6:00) Central Time (US & Canada), Mexico City"},
    {"value": "-05:00", "name": "(GMT -5:00) Eastern Time (US & Canada), Bogota, Lima"},
    {"value": "-04:00", "name": "(GMT -4:00) Atlantic Time (Canada), Caracas, La Paz"},
    {"value": "-03:30", "name": "(GMT -3:30) Newfoundland"},
    {"value": "-03:00", "name": "(GMT -3:00) Brazil, Buenos Aires, Georgetown"},
]


def format_offset(moment: datetime) -> str:
    offset = moment.utcoffset()
    total_minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def default_form_values(now: Optional[datetime] = None) -> Dict[str, object]:
    """Initial form: current local time, local offset, no title or date"""
    now = now or datetime.now().astimezone()
    hour_12 = now.hour % 12 or 12
    return {
        "title": "",
        "slug": "",
        "date": None,
        "hour": str(hour_12),
        "minute": f"{now.minute:02d}",
        "meridiem": "PM" if now.hour >= 12 else "AM",
        "timezone": format_offset(now),
    }


class CreationSession:
    """Form values, dirty tracking and title checks for one creation flow.

    Every field change and every checker transition re-evaluates the gate
    and calls on_change with the session.
    """

    def __init__(
        self,
        store: EventStore,
        context: CreationContext,
        debounce_seconds: float = 0.5,
        on_change: Optional[Callable[["CreationSession"], None]] = None,
        now: Optional[datetime] = None,
    ):
        self.context = context
        self.initial_values = default_form_values(now)
        self.values: Dict[str, object] = dict(self.initial_values)
        self.touched = set()
        self.dirty = False
        self.field_errors: Dict[str, str] = {}
        self.store_errors: Dict[str, str] = {}
        self.message: Optional[str] = None
        self.submitting = False
        self._on_change = on_change
        self.submitter = EventSubmitter(store)
        self.checker = TitleUniquenessChecker(
            store, debounce_seconds=debounce_seconds, on_change=self._probe_changed
        )

    @property
    def probe(self) -> ProbeState:
        return self.checker.state

    def set_field(self, name: str, value) -> None:
        if not isinstance(name, str):
            raise FieldValidationError({"name": "Field name must be a string"})
        if name not in DRAFT_FIELDS:
            raise FieldValidationError({name: "Unknown field"})
        if isinstance(value, date) and not isinstance(value, datetime):
            value = value.isoformat()

        if self.values.get(name) != value:
            self.dirty = True
        self.values[name] = value
        self.touched.add(name)
        self.store_errors.pop(name, None)

        if name == "title":
            self.message = None
            self.store_errors.clear()
            self.values["slug"] = generate_slug(str(value or ""))
            self.touched.add("slug")
            self._revalidate()
            # update() notifies through _probe_changed
            self.checker.update(str(value or ""))
            return

        self._revalidate()
        self._notify()

    def gate(self) -> GateDecision:
        errors = {**self.field_errors, **self.store_errors}
        decision = ValidationGate.evaluate(self.values, errors, self.dirty, self.probe)
        if self.submitting:
            return GateDecision(allowed=False, reasons=decision.reasons + ["submission in progress"])
        return decision

    async def submit(self) -> SubmissionResult:
        self.touched.update(DRAFT_FIELDS)
        self._revalidate()
        decision = self.gate()
        if not decision.allowed:
            result = self._refusal()
            self.message = result.message
            self._notify()
            return result

        draft, _ = validate_draft(self.values)
        self.submitting = True
        self._notify()
        try:
            result = await self.submitter.submit(draft, self.context, self.probe)
        finally:
            self.submitting = False

        if result.ok:
            self.message = None
        else:
            self.store_errors = dict(result.field_errors)
            self.message = result.message
        self._notify()
        return result

    def close(self) -> None:
        self.checker.close()

    def snapshot(self) -> dict:
        decision = self.gate()
        return {
            "values": dict(self.values),
            "field_errors": {**self.field_errors, **self.store_errors},
            "title_check": self.probe.to_dict(),
            "dirty": self.dirty,
            "submitting": self.submitting,
            "can_submit": decision.allowed,
            "blocked_by": decision.reasons,
            "message": self.message,
        }

    def _refusal(self) -> SubmissionResult:
        errors = {**self.field_errors, **self.store_errors}
        probe = self.probe
        if probe.exists and probe.title == normalize_title(str(self.values.get("title") or "")):
            errors["title"] = TITLE_TAKEN_MESSAGE
            return SubmissionResult(status=SubmissionStatus.REJECTED, field_errors=errors, message=TITLE_TAKEN_MESSAGE)
        return SubmissionResult(status=SubmissionStatus.REJECTED, field_errors=errors, message=INCOMPLETE_FORM_MESSAGE)

    def _revalidate(self) -> None:
        self.field_errors = field_errors_for(self.values, self.touched)

    def _probe_changed(self, state: ProbeState) -> None:
        if state.error:
            self.message = state.error
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
