"""
Field type mapping for ddlsync.

Maps logical field types to MySQL column types. Type templates may contain
placeholders like ``{length|255}`` (the field's ``length`` parameter, or 255)
or ``decimal({size|length|10},{precision|2})``. The fallback of a placeholder
may itself be one placeholder deep, e.g. ``varchar({length|{size|255}})``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..exceptions import ConfigurationError
from .model import FieldDescriptor, FieldKind


logger = logging.getLogger(__name__)


DEFAULT_TYPE_MAPPING: Dict[str, str] = {
    FieldKind.INT.value: "integer",
    # don't use MySQL's approximate value types like float or double
    FieldKind.REAL.value: "decimal(18,6)",
    FieldKind.MONEY.value: "decimal(14,2)",
    FieldKind.DATETIME.value: "datetime",
    FieldKind.DATE.value: "date",
    FieldKind.STRING.value: "varchar({length|255})",
    FieldKind.TEXT.value: "text",
    FieldKind.BOOLEAN.value: "bool",
}

DEFAULT_TYPE = "varchar({length|255})"

MAX_NESTING = 2


@dataclass(frozen=True)
class _Placeholder:
    candidates: Tuple[str, ...]
    fallback: Tuple[Union[str, "_Placeholder"], ...]

    def render(self, params: Mapping[str, Any]) -> str:
        for candidate in self.candidates:
            value = params.get(candidate)
            if value is not None:
                return str(value)
        return _render_parts(self.fallback, params)


_Part = Union[str, _Placeholder]


def _render_parts(parts: Tuple[_Part, ...], params: Mapping[str, Any]) -> str:
    return "".join(p if isinstance(p, str) else p.render(params) for p in parts)


class TypeTemplate:
    """A parsed SQL type template."""

    def __init__(self, template: str):
        self.template = template
        self._parts = self._parse(template)

    def render(self, params: Optional[Mapping[str, Any]] = None) -> str:
        return _render_parts(self._parts, params or {})

    @property
    def is_parametrized(self) -> bool:
        return any(isinstance(p, _Placeholder) for p in self._parts)

    def _error(self, reason: str, position: int) -> ConfigurationError:
        return ConfigurationError(
            f"Malformed type template: {reason}",
            details={"template": self.template, "position": position},
        )

    def _parse(self, template: str) -> Tuple[_Part, ...]:
        parts, pos = self._parse_sequence(template, 0, depth=0, stop="")
        if pos != len(template):
            raise self._error("unexpected '}'", pos)
        return parts

    def _parse_sequence(
        self, template: str, pos: int, depth: int, stop: str
    ) -> Tuple[Tuple[_Part, ...], int]:
        parts: List[_Part] = []
        buf = ""
        while pos < len(template):
            char = template[pos]
            if char in stop or char == "}":
                break
            if char == "{":
                if buf:
                    parts.append(buf)
                    buf = ""
                placeholder, pos = self._parse_placeholder(template, pos, depth + 1)
                parts.append(placeholder)
                continue
            buf += char
            pos += 1
        if buf:
            parts.append(buf)
        return tuple(parts), pos

    def _parse_placeholder(
        self, template: str, pos: int, depth: int
    ) -> Tuple[_Placeholder, int]:
        if depth > MAX_NESTING:
            raise self._error("placeholders nested more than one level deep", pos)
        start = pos
        pos += 1  # skip "{"
        segments: List[Tuple[_Part, ...]] = []
        while True:
            segment, pos = self._parse_sequence(template, pos, depth, stop="|")
            segments.append(segment)
            if pos >= len(template):
                raise self._error("unclosed '{'", start)
            if template[pos] == "|":
                pos += 1
                continue
            pos += 1  # skip "}"
            break

        if len(segments) < 2 or not segments[-1]:
            raise self._error("placeholder needs a literal fallback", start)

        candidates = []
        for segment in segments[:-1]:
            if len(segment) != 1 or not isinstance(segment[0], str):
                raise self._error("placeholder candidate must be a plain name", start)
            name = segment[0].strip()
            if not name:
                raise self._error("empty placeholder candidate", start)
            candidates.append(name)

        return _Placeholder(tuple(candidates), segments[-1]), pos


class TypeMapper:
    """
    Maps field descriptors to SQL column types.

    Unknown field kinds fall back to the default type. All templates are
    parsed at construction, so a malformed template fails at startup.
    """

    def __init__(
        self,
        mapping: Optional[Mapping[str, str]] = None,
        default_type: Optional[str] = None,
    ):
        source = dict(DEFAULT_TYPE_MAPPING if mapping is None else mapping)
        self.mapping: Dict[str, TypeTemplate] = {}
        for kind, template in source.items():
            key = kind.value if isinstance(kind, FieldKind) else str(kind)
            self.mapping[key] = TypeTemplate(template)
        self.default_type = TypeTemplate(default_type or DEFAULT_TYPE)

    def template_for(self, kind: Union[FieldKind, str]) -> TypeTemplate:
        key = kind.value if isinstance(kind, FieldKind) else kind
        return self.mapping.get(key, self.default_type)

    def map_field_type(self, field_descriptor: FieldDescriptor) -> str:
        """Resolve the SQL type for a field from its kind and parameters."""
        template = self.template_for(field_descriptor.kind)
        sql_type = template.render(field_descriptor.params)
        logger.debug(
            f"Mapped field {field_descriptor.name} ({field_descriptor.kind.value}) "
            f"to {sql_type}"
        )
        return sql_type
