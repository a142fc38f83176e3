"""
Field lookup over loosely structured application records.

Applications arrive from different form versions, so a value may sit at the top level of the
record or inside its `data` (pending) / `application_data` (rejected) payload, with varying
key casing. A policy is an ordered list of accessors; the first non-empty result wins.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Tuple

Record = Mapping[str, Any]
Accessor = Callable[[Record], Any]


def _nested(record: Record) -> Mapping[str, Any]:
    # An empty `data` still counts as present
    nested = record.get("data")
    if nested is None:
        nested = record.get("application_data")
    return nested if isinstance(nested, Mapping) else {}


def lookup_field(record: Record, key: str) -> Any:
    """Top-level key, nested key, then the same two with the key lower-cased. "" if none is set."""
    if not record:
        return ""
    nested = _nested(record)
    lowered = key.lower()
    for source, k in ((record, key), (nested, key), (record, lowered), (nested, lowered)):
        value = source.get(k)
        if value:
            return value
    return ""


def field(key: str) -> Accessor:
    return lambda record: lookup_field(record, key)


def joined(*keys: str) -> Accessor:
    """Space-joined non-empty values of several keys, e.g. first and last name."""

    def _accessor(record: Record) -> str:
        parts = [str(lookup_field(record, k)).strip() for k in keys]
        return " ".join(p for p in parts if p)

    return _accessor


@dataclass(frozen=True)
class FieldResolutionPolicy:
    accessors: Tuple[Accessor, ...]
    default: str = ""

    def resolve(self, record: Record) -> str:
        for accessor in self.accessors:
            value = accessor(record)
            if value:
                return str(value)
        return self.default


NAME_POLICY = FieldResolutionPolicy(
    accessors=(
        field("full_name"),
        field("name"),
        joined("first_name", "last_name"),
        field("applicant_name"),
        field("guardian_name"),
    ),
    default="Unknown",
)

EMAIL_POLICY = FieldResolutionPolicy(
    accessors=(field("email"), field("applicant_email")),
    default="",
)


def applicant_name(record: Record) -> str:
    return NAME_POLICY.resolve(record)


def applicant_email(record: Record) -> str:
    return EMAIL_POLICY.resolve(record).strip()
