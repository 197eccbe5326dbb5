"""
Submission gate for the event creation form
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from app.schemas.event import DRAFT_FIELDS, validate_draft
from app.services.slugs import normalize_title
from app.services.uniqueness import ProbeState


def is_present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reasons: List[str] = field(default_factory=list)


class ValidationGate:
    """Decides whether the creation form may be submitted"""

    @staticmethod
    def evaluate(
        values: Mapping[str, object],
        field_errors: Mapping[str, str],
        dirty: bool,
        probe: Optional[ProbeState],
    ) -> GateDecision:
        reasons = []

        missing = [name for name in DRAFT_FIELDS if not is_present(values.get(name))]
        if missing:
            reasons.append(f"missing fields: {', '.join(missing)}")
        if field_errors:
            reasons.append(f"invalid fields: {', '.join(sorted(field_errors))}")
        if not dirty:
            reasons.append("form has not been modified")

        if probe is None:
            reasons.append("title has not been checked")
        else:
            if not probe.settled:
                reasons.append("title check in progress")
            elif probe.title != normalize_title(str(values.get("title") or "")):
                reasons.append("title check is out of date")
            elif probe.exists is None:
                reasons.append("title availability unknown")
            elif probe.exists:
                reasons.append("title already taken")

        return GateDecision(allowed=not reasons, reasons=reasons)

    @staticmethod
    def is_open(
        values: Mapping[str, object],
        field_errors: Mapping[str, str],
        dirty: bool,
        probe: Optional[ProbeState],
    ) -> bool:
        return ValidationGate.evaluate(values, field_errors, dirty, probe).allowed


def field_errors_for(values: Mapping[str, object], touched) -> Dict[str, str]:
    """Schema errors for the fields the user has touched so far"""
    _, errors = validate_draft(dict(values))
    return {name: message for name, message in errors.items() if name in touched}
