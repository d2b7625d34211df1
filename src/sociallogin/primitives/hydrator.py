"""Declarative hydration of provider payloads into canonical identities.

A field map is data: `{raw_key: target}` where the target is a canonical
field name, a `FieldRule` naming one of a few transform kinds, or a callable
`(raw_value, identity) -> None` for genuine provider quirks.

Hydration is permissive. Keys missing from the map are ignored
and malformed optional values leave the target field unset; it never raises
for optional data.
"""

from __future__ import annotations

import logging
import types
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Union, get_args, get_origin

from sociallogin.models.identity import CanonicalIdentity

logger = logging.getLogger(__name__)

TransformFn = Callable[[Any, CanonicalIdentity], None]

DATE_FORMATS = (
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
)

TRANSFORM_KINDS = ("date", "enum", "bool")
FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


@dataclass(frozen=True)
class FieldRule:
    """Mapping rule with a named transform.

    Kinds:
        date: parse the raw value as a calendar date; unparseable values are
            skipped
        enum: translate through `values`; unmatched values are skipped when
            `strict`, otherwise assigned as-is so the target can coerce them
        bool: truthiness of the raw value
    """

    target: str
    kind: str | None = None
    values: Mapping[Any, Any] = field(default_factory=dict)
    strict: bool = False

    def __post_init__(self) -> None:
        if self.kind is not None and self.kind not in TRANSFORM_KINDS:
            raise ValueError(f"Unknown transform kind: {self.kind}")


FieldTarget = Union[str, FieldRule, TransformFn]
FieldMap = Mapping[str, FieldTarget]


def date_field(target: str) -> FieldRule:
    return FieldRule(target, kind="date")


def enum_field(target: str, values: Mapping[Any, Any], strict: bool = False) -> FieldRule:
    return FieldRule(target, kind="enum", values=values, strict=strict)


def bool_field(target: str) -> FieldRule:
    return FieldRule(target, kind="bool")


def parse_date(value: Any) -> date | None:
    """Parse a provider date value, returning None when it is not a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _is_bool_annotation(annotation: Any) -> bool:
    if annotation is bool:
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        return bool in get_args(annotation)
    return False


_BOOL_FIELDS = frozenset(
    name
    for name, info in CanonicalIdentity.model_fields.items()
    if _is_bool_annotation(info.annotation)
)


class FieldMapper:
    """Hydrates raw provider payloads using a field map."""

    def __init__(self, mapping: FieldMap):
        self.mapping = mapping

    def hydrate(self, payload: Any) -> CanonicalIdentity:
        """Build a fresh identity from a raw payload."""
        return self.hydrate_into(CanonicalIdentity(), payload)

    def hydrate_into(
        self, identity: CanonicalIdentity, payload: Any
    ) -> CanonicalIdentity:
        """Apply the field map to an existing identity."""
        if not isinstance(payload, Mapping):
            logger.debug(f"Skipping hydration of non-mapping payload: {type(payload)}")
            return identity

        for raw_key, target in self.mapping.items():
            if raw_key not in payload:
                continue
            self._apply(identity, raw_key, target, payload[raw_key])

        return identity

    def _apply(
        self,
        identity: CanonicalIdentity,
        raw_key: str,
        target: FieldTarget,
        value: Any,
    ) -> None:
        try:
            if isinstance(target, str):
                assign(identity, target, value)
            elif isinstance(target, FieldRule):
                self._apply_rule(identity, target, value)
            elif callable(target):
                target(value, identity)
            else:
                logger.debug(f"Ignoring unsupported mapping target for '{raw_key}'")
        except (ValueError, TypeError, LookupError, AttributeError) as e:
            # pydantic's ValidationError is a ValueError
            logger.debug(f"Leaving field for '{raw_key}' unset: {e}")

    def _apply_rule(
        self, identity: CanonicalIdentity, rule: FieldRule, value: Any
    ) -> None:
        if rule.kind == "date":
            parsed = parse_date(value)
            if parsed is not None:
                assign(identity, rule.target, parsed)
        elif rule.kind == "enum":
            matched, translated = _lookup(rule.values, value)
            if matched:
                assign(identity, rule.target, translated)
            elif not rule.strict:
                assign(identity, rule.target, value)
        elif rule.kind == "bool":
            assign(identity, rule.target, truthy(value))
        else:
            assign(identity, rule.target, value)


def assign(identity: CanonicalIdentity, target: str, value: Any) -> None:
    """Assign a value to a canonical field, or to `extra` for unknown names.

    Raises:
        ValueError: If the value fails validation for the target field
    """
    if target not in CanonicalIdentity.model_fields or target == "extra":
        identity.extra[target] = value
        return

    if target in _BOOL_FIELDS and value is not None:
        value = truthy(value)

    setattr(identity, target, value)


def truthy(value: Any) -> bool:
    """Truthiness, treating the usual string spellings of false as False."""
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    return bool(value)


def _lookup(values: Mapping[Any, Any], value: Any) -> tuple[bool, Any]:
    try:
        if value in values:
            return True, values[value]
    except TypeError:
        # unhashable raw value
        return False, None
    if str(value) in values:
        return True, values[str(value)]
    return False, None
