"""Kubernetes label selector parsing and matching.

Supports the string form accepted by ``kubectl -l``:

    app=reviews,version!=v1,tier in (web,api),env notin (dev),canary,!legacy

An empty selector matches every label set.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from workloadlens.errors import InvalidInputError

_KEY = r"[A-Za-z0-9]([A-Za-z0-9._/-]*[A-Za-z0-9])?"
_VALUE = r"([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)?"

_EQUALITY_RE = re.compile(rf"^\s*(?P<key>{_KEY})\s*(?P<op>==|=|!=)\s*(?P<value>{_VALUE})\s*$")
_SET_RE = re.compile(rf"^\s*(?P<key>{_KEY})\s+(?P<op>in|notin)\s*\((?P<values>[^()]*)\)\s*$")
_EXISTS_RE = re.compile(rf"^\s*(?P<key>{_KEY})\s*$")
_NOT_EXISTS_RE = re.compile(rf"^\s*!\s*(?P<key>{_KEY})\s*$")
_VALUE_RE = re.compile(rf"^{_VALUE}$")


class Operator(StrEnum):
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: Operator
    values: frozenset[str] = frozenset()

    def matches(self, labels: dict[str, str]) -> bool:
        present = self.key in labels
        if self.operator is Operator.EXISTS:
            return present
        if self.operator is Operator.DOES_NOT_EXIST:
            return not present
        if self.operator in (Operator.EQUALS, Operator.IN):
            return present and labels[self.key] in self.values
        # != and notin also match when the key is absent
        return not present or labels[self.key] not in self.values


@dataclass(frozen=True)
class LabelSelector:
    """A conjunction of requirements."""

    requirements: tuple[Requirement, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.requirements

    def matches(self, labels: dict[str, str] | None) -> bool:
        labels = labels or {}
        return all(req.matches(labels) for req in self.requirements)

    def __str__(self) -> str:
        parts: list[str] = []
        for req in self.requirements:
            if req.operator is Operator.EXISTS:
                parts.append(req.key)
            elif req.operator is Operator.DOES_NOT_EXIST:
                parts.append(f"!{req.key}")
            elif req.operator in (Operator.IN, Operator.NOT_IN):
                parts.append(f"{req.key} {req.operator.value} ({','.join(sorted(req.values))})")
            else:
                (value,) = req.values
                parts.append(f"{req.key}{req.operator.value}{value}")
        return ",".join(parts)


def parse_selector(text: str | None) -> LabelSelector:
    """Parse a selector string; raise InvalidInputError on malformed input."""
    if text is None or not text.strip():
        return LabelSelector()
    requirements = tuple(_parse_requirement(term, text) for term in _split_terms(text))
    return LabelSelector(requirements=requirements)


def selector_from_labels(labels: dict[str, str] | None) -> LabelSelector:
    """Equality selector for a label set; an empty set selects everything."""
    return LabelSelector(
        requirements=tuple(
            Requirement(key=key, operator=Operator.EQUALS, values=frozenset({value}))
            for key, value in sorted((labels or {}).items())
        )
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_terms(text: str) -> list[str]:
    """Split on commas that are not inside a parenthesised value list."""
    terms: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise InvalidInputError(f"unbalanced parenthesis in label selector {text!r}")
        if char == "," and depth == 0:
            terms.append("".join(current))
            current = []
            continue
        current.append(char)
    if depth != 0:
        raise InvalidInputError(f"unbalanced parenthesis in label selector {text!r}")
    terms.append("".join(current))
    return terms


def _parse_requirement(term: str, text: str) -> Requirement:
    if not term.strip():
        raise InvalidInputError(f"empty term in label selector {text!r}")

    if match := _SET_RE.match(term):
        values = [v.strip() for v in match["values"].split(",")]
        if any(not v or not _VALUE_RE.match(v) for v in values):
            raise InvalidInputError(f"invalid value list in label selector term {term.strip()!r}")
        op = Operator.IN if match["op"] == "in" else Operator.NOT_IN
        return Requirement(key=match["key"], operator=op, values=frozenset(values))

    if match := _EQUALITY_RE.match(term):
        op = Operator.NOT_EQUALS if match["op"] == "!=" else Operator.EQUALS
        return Requirement(key=match["key"], operator=op, values=frozenset({match["value"]}))

    if match := _NOT_EXISTS_RE.match(term):
        return Requirement(key=match["key"], operator=Operator.DOES_NOT_EXIST)

    if match := _EXISTS_RE.match(term):
        return Requirement(key=match["key"], operator=Operator.EXISTS)

    raise InvalidInputError(f"cannot parse label selector term {term.strip()!r}")
