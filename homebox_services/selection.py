"""
Field-selection schema for the query/mutation API.

Every result type declares its fields up front.  A request's ``fields``
list is parsed against that declaration into an immutable Selection before
anything touches the store, so a malformed selection fails the request
without side effects.

Selection syntax
----------------
    ["id", "name", {"container": ["id", "name"]}, "totals"]

    - A bare name selects a field.  For a reference (``location`` on a
      Container, ``container`` on an Item) a bare name yields the id; for
      a list relation (``containers``, ``items``) it yields a list of ids;
      for an embedded value (``totals``, ``label``) it yields all of that
      value's fields.
    - ``{name: [...]}`` selects nested fields of a relation.
    - Names the type does not declare are dropped from the response.
    - Omitting ``fields`` selects every default field of the result type.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from homebox_kernel.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str
    target: str | None = None
    many: bool = False
    reference: bool = False
    default: bool = True

    @property
    def is_scalar(self) -> bool:
        return self.target is None

    def describe(self) -> str:
        shown = self.target or self.type
        return f"[{shown}]" if self.many else shown


@dataclass(frozen=True)
class TypeSpec:
    name: str
    fields: Mapping[str, FieldSpec]

    def default_selection(self) -> Selection:
        selected = []
        for spec in self.fields.values():
            if not spec.default:
                continue
            selected.append(SelectedField(spec.name))
        return tuple(selected)


@dataclass(frozen=True)
class SelectedField:
    name: str
    children: Selection | None = field(default=None)


Selection = tuple[SelectedField, ...]


def _type(name: str, *specs: FieldSpec) -> TypeSpec:
    return TypeSpec(name=name, fields={s.name: s for s in specs})


SCHEMA: dict[str, TypeSpec] = {
    t.name: t
    for t in (
        _type(
            "Location",
            FieldSpec("id", "ID"),
            FieldSpec("name", "String"),
            FieldSpec("containers", "ID", target="Container", many=True, reference=True, default=False),
            FieldSpec("totals", "LocationTotals", target="LocationTotals", default=False),
        ),
        _type(
            "Container",
            FieldSpec("id", "ID"),
            FieldSpec("created", "DateTime"),
            FieldSpec("updated", "DateTime"),
            FieldSpec("name", "String"),
            FieldSpec("location", "ID", target="Location", reference=True),
            FieldSpec("items", "ID", target="Item", many=True, reference=True, default=False),
            FieldSpec("totals", "ContainerTotals", target="ContainerTotals", default=False),
            FieldSpec("label", "Label", target="Label", default=False),
        ),
        _type(
            "Item",
            FieldSpec("id", "ID"),
            FieldSpec("created", "DateTime"),
            FieldSpec("updated", "DateTime"),
            FieldSpec("name", "String"),
            FieldSpec("description", "String"),
            FieldSpec("quantity", "Int"),
            FieldSpec("container", "ID", target="Container", reference=True),
            FieldSpec("label", "Label", target="Label", default=False),
        ),
        _type(
            "ContainerTotals",
            FieldSpec("itemCount", "Int"),
            FieldSpec("totalQuantity", "Int"),
        ),
        _type(
            "LocationTotals",
            FieldSpec("containerCount", "Int"),
            FieldSpec("itemCount", "Int"),
            FieldSpec("totalQuantity", "Int"),
        ),
        _type(
            "Label",
            FieldSpec("id", "ID"),
            FieldSpec("kind", "String"),
            FieldSpec("payload", "String"),
        ),
        _type(
            "DeleteResult",
            FieldSpec("id", "ID"),
            FieldSpec("kind", "String"),
            FieldSpec("deletedItemCount", "Int"),
            FieldSpec("unassignedContainerCount", "Int"),
        ),
    )
}

# Result type of operations that may return any entity kind.
NODE_TYPE = "Node"
NODE_KINDS = ("Location", "Container", "Item")


def parse_selection(type_name: str, raw: Any) -> Selection:
    """
    Parse a ``fields`` list against ``type_name``.

    Raises:
        InvalidArgumentError: ``raw`` is not a list, an entry is neither a
            string nor a single-key object, or nested fields are given for
            a scalar.
    """
    spec = SCHEMA[type_name]
    if raw is None:
        return spec.default_selection()
    if not isinstance(raw, list):
        raise InvalidArgumentError("fields", "must be a list")

    selected: list[SelectedField] = []
    for entry in raw:
        if isinstance(entry, str):
            name, sub = entry, None
        elif isinstance(entry, dict) and len(entry) == 1:
            ((name, sub),) = entry.items()
            if not isinstance(name, str) or not isinstance(sub, list):
                raise InvalidArgumentError("fields", f"nested selection must map a name to a list: {entry!r}")
        else:
            raise InvalidArgumentError("fields", f"unsupported selection entry: {entry!r}")

        field_spec = spec.fields.get(name)
        if field_spec is None:
            continue
        if field_spec.is_scalar:
            if sub is not None:
                raise InvalidArgumentError("fields", f"'{type_name}.{name}' has no sub-fields")
            selected.append(SelectedField(name))
        elif sub is not None:
            selected.append(SelectedField(name, parse_selection(field_spec.target, sub)))
        elif field_spec.reference:
            selected.append(SelectedField(name))
        else:
            selected.append(SelectedField(name, parse_selection(field_spec.target, None)))
    return tuple(selected)


def describe_types() -> dict[str, dict[str, str]]:
    return {
        name: {f.name: f.describe() for f in spec.fields.values()}
        for name, spec in SCHEMA.items()
    }
