"""Measures, fields and tags, and extraction of measures from dataclasses."""

from __future__ import annotations

import ast
import dataclasses
import enum
import functools
import heapq
import typing
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, Sequence

__all__ = [
    "FieldType",
    "Field",
    "Tag",
    "Measure",
    "metric",
    "tag",
    "make_measures",
]


class FieldType(enum.Enum):
    """How a measure handler should treat the value of a field."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"

    def __str__(self) -> str:
        return self.value


_SUPPORTED_VALUE_TYPES = (bool, int, float, timedelta)


@dataclass(frozen=True)
class Field:
    """A named value of a measure."""

    name: str
    value: Any
    type: FieldType = FieldType.COUNTER

    def __str__(self) -> str:
        return f"{self.name}:{self.value}"


@dataclass(frozen=True)
class Tag:
    """A named dimension of a measure."""

    name: str
    value: str

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


@dataclass
class Measure:
    """A single measure: a name, a list of fields and a list of sorted tags."""

    name: str
    fields: list[Field] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    def clone(self) -> "Measure":
        """Return a copy that shares no mutable state with this measure."""
        return Measure(name=self.name, fields=list(self.fields), tags=list(self.tags))

    def __str__(self) -> str:
        fields = ", ".join(str(f) for f in self.fields)
        tags = ", ".join(str(t) for t in self.tags)
        return f"{{ {self.name}({fields}) [{tags}] }}"


@dataclass(frozen=True)
class _MetricSpec:
    name: str
    type: FieldType


@dataclass(frozen=True)
class _TagSpec:
    name: str


def _field_type(kind: str | FieldType | None) -> FieldType:
    if isinstance(kind, FieldType):
        return kind
    if kind == "counter":
        return FieldType.COUNTER
    if kind == "gauge":
        return FieldType.GAUGE
    return FieldType.HISTOGRAM


def metric(name: str = "", type: str | FieldType | None = None) -> _MetricSpec:
    """Mark a dataclass field as a metric, for use inside ``typing.Annotated``.

    On a nested dataclass (or a list of them) the name is appended to the
    measure name. Unknown or missing types default to a histogram.
    """
    return _MetricSpec(name=name, type=_field_type(type))


def tag(name: str) -> _TagSpec:
    """Mark a string dataclass field as a tag, for use inside ``typing.Annotated``."""
    return _TagSpec(name=name)


def _concat(prefix: str, suffix: str) -> str:
    if not prefix:
        return suffix
    if not suffix:
        return prefix
    return f"{prefix}.{suffix}"


def _callee_name(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""


def _literal(node: ast.expr) -> Any:
    if isinstance(node, ast.Attribute) and node.attr in FieldType.__members__:
        return FieldType[node.attr]
    try:
        return ast.literal_eval(node)
    except (ValueError, SyntaxError):
        return None


def _specs_from_text(annotation: str) -> list[Any]:
    """Find metric() and tag() markers in an annotation kept as text."""
    try:
        tree = ast.parse(annotation, mode="eval")
    except SyntaxError:
        return []
    specs: list[Any] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        callee = _callee_name(node.func)
        if callee not in ("metric", "tag"):
            continue
        args = [_literal(a) for a in node.args]
        kwargs = {k.arg: _literal(k.value) for k in node.keywords if k.arg}
        if callee == "metric":
            name = args[0] if args else kwargs.get("name", "")
            kind = args[1] if len(args) > 1 else kwargs.get("type")
            specs.append(metric(name or "", kind))
        else:
            name = args[0] if args else kwargs.get("name", "")
            specs.append(tag(name or ""))
    return specs


def _field_metadata(f: dataclasses.Field) -> Sequence[Any]:
    hint = f.type
    if isinstance(hint, str):
        return _specs_from_text(hint)
    if typing.get_origin(hint) is typing.Annotated:
        return getattr(hint, "__metadata__", ())
    return ()


@functools.lru_cache(maxsize=None)
def _field_specs(cls: type) -> tuple[tuple[str, _MetricSpec | None, _TagSpec | None], ...]:
    specs = []
    for f in dataclasses.fields(cls):
        metadata = _field_metadata(f)
        metric_spec = next((m for m in metadata if isinstance(m, _MetricSpec)), None)
        tag_spec = next((m for m in metadata if isinstance(m, _TagSpec)), None)
        specs.append((f.name, metric_spec, tag_spec))
    return tuple(specs)


def _is_struct(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _collect(
    out: list[Measure],
    name: str,
    value: Any,
    inherited: dict[str, Tag],
    extra_tags: list[Tag],
) -> None:
    if _is_sequence(value):
        for item in value:
            _collect(out, name, item, inherited, extra_tags)
        return
    if not _is_struct(value):
        return

    specs = _field_specs(type(value))
    tags = dict(inherited)

    for attr, _, tag_spec in specs:
        if tag_spec is None or not tag_spec.name:
            continue
        tag_value = getattr(value, attr)
        if not isinstance(tag_value, str):
            raise TypeError(
                f"unsupported value type found for metric tags of "
                f"{_concat(name, tag_spec.name)}: {type(tag_value).__name__}"
            )
        tags[tag_spec.name] = Tag(tag_spec.name, tag_value)

    fields: list[Field] = []
    for attr, metric_spec, _ in specs:
        field_value = getattr(value, attr)
        metric_name = metric_spec.name if metric_spec is not None else ""
        if _is_struct(field_value) or _is_sequence(field_value):
            _collect(out, _concat(name, metric_name), field_value, tags, extra_tags)
        elif metric_spec is not None and metric_spec.name:
            if not isinstance(field_value, _SUPPORTED_VALUE_TYPES):
                raise TypeError(
                    f"unsupported value type found for metric "
                    f"{_concat(name, metric_spec.name)}: {type(field_value).__name__}"
                )
            fields.append(Field(metric_spec.name, field_value, metric_spec.type))

    if fields:
        own_tags = [tags[key] for key in sorted(tags)]
        merged = list(heapq.merge(extra_tags, own_tags, key=lambda t: t.name))
        out.append(Measure(name=name, fields=fields, tags=merged))


def make_measures(prefix: str, value: Any, *args: Tag) -> list[Measure]:
    """Extract the measures that a dataclass instance (or a list of them) represents.

    Fields annotated with :func:`metric` become measure fields, fields annotated
    with :func:`tag` become tags. Nested dataclasses are searched recursively and
    inherit the tags of their parents, which they may override. The extra tags
    given as arguments are added to every measure.
    """
    extra_tags = sorted(args, key=lambda t: t.name)
    out: list[Measure] = []
    _collect(out, prefix, value, {}, extra_tags)
    return out


def _iter_tags(tags: Iterable[Tag]) -> list[Tag]:
    return list(tags)