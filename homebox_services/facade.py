"""
Module: homebox_services.facade
Responsibility: The query/mutation API.  Accepts one request document
    naming one operation, its typed arguments and a field selection, runs
    it against the hierarchy store in a single transaction, and returns
    ``{"data": ...}`` or ``{"error": {"kind", "code", "message"}}``.
Architecture position: Services layer.  Composes the kernel's
    HierarchyService, selectors and LabelService.  Transport-agnostic: the
    HTTP server only moves documents in and out.

Invariants enforced:
    - One request == one transaction.  Argument checking, the operation
      and every nested field resolution happen inside one session_scope, so
      a mutation is applied entirely or not at all, and nested reads see
      the same state as the operation.
    - Queries run read-only; they never change the relational store.
    - Every HomeboxError becomes an error object with one of the five API
      kinds.  Anything else is a defect and propagates.

Request document:
    {"type": "mutation",                 # optional; must match if given
     "operation": "createItem",
     "arguments": {"name": "Hammer", "container": "<uuid>"},
     "fields": ["id", {"container": ["name"]}]}
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from homebox_kernel.db.engine import session_scope
from homebox_kernel.domain.clock import Clock, SystemClock
from homebox_kernel.domain.dtos import UNSET, ContainerInfo, EntityKind, LocationInfo
from homebox_kernel.domain.identifiers import IdentifierService
from homebox_kernel.domain.symbol import SymbolCodec
from homebox_kernel.exceptions import (
    HomeboxError,
    InvalidArgumentError,
    UnknownOperationError,
)
from homebox_kernel.logging_config import LogContext, get_logger
from homebox_kernel.selectors.hierarchy_selector import HierarchySelector
from homebox_kernel.selectors.totals_selector import TotalsSelector
from homebox_kernel.services.hierarchy_service import HierarchyService
from homebox_services.keyvalue import DEFAULT_TTL_SECONDS, KeyValueStore
from homebox_services.label_service import LabelService
from homebox_services.selection import (
    NODE_KINDS,
    NODE_TYPE,
    SCHEMA,
    Selection,
    describe_types,
    parse_selection,
)

logger = get_logger("services.facade")

QUERY = "query"
MUTATION = "mutation"

_DOCUMENT_KEYS = frozenset({"type", "operation", "arguments", "fields"})


# ---------------------------------------------------------------------------
# Operation catalogue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Argument:
    name: str
    type: str
    required: bool = False

    def describe(self) -> str:
        return f"{self.name}: {self.type}{'!' if self.required else ''}"


@dataclass(frozen=True)
class Operation:
    name: str
    kind: str
    result: str
    arguments: tuple[Argument, ...]
    handler: Callable[[RequestContext, dict[str, Any]], Any]
    many: bool = False

    def describe(self) -> dict[str, Any]:
        returns = f"[{self.result}]" if self.many else self.result
        return {
            "name": self.name,
            "arguments": [a.describe() for a in self.arguments],
            "returns": returns,
        }


def _id(name: str, required: bool = False) -> Argument:
    return Argument(name, "ID", required)


def _str(name: str, required: bool = False) -> Argument:
    return Argument(name, "String", required)


def _int(name: str) -> Argument:
    return Argument(name, "Int")


def _bool(name: str) -> Argument:
    return Argument(name, "Boolean")


_PAGING = (_int("limit"), _int("offset"))


def _paging(args: dict[str, Any]) -> dict[str, Any]:
    return {
        "limit": args.get("limit"),
        "offset": args.get("offset") or 0,
    }


def _updates(args: dict[str, Any], mapping: Mapping[str, str]) -> dict[str, Any]:
    """Absent arguments become UNSET; explicit nulls stay None."""
    return {param: args.get(arg, UNSET) for arg, param in mapping.items()}


OPERATIONS: dict[str, Operation] = {
    op.name: op
    for op in (
        # Queries
        Operation(
            "location", QUERY, "Location", (_id("id", True),),
            lambda ctx, a: ctx.selector.get_location(a["id"]),
        ),
        Operation(
            "locations", QUERY, "Location", _PAGING,
            lambda ctx, a: ctx.selector.list_locations(**_paging(a)),
            many=True,
        ),
        Operation(
            "container", QUERY, "Container", (_id("id", True),),
            lambda ctx, a: ctx.selector.get_container(a["id"]),
        ),
        Operation(
            "containers", QUERY, "Container", (_id("location"), _bool("unassigned"), *_PAGING),
            lambda ctx, a: ctx.selector.list_containers(
                location_id=a.get("location"),
                unassigned=bool(a.get("unassigned")),
                **_paging(a),
            ),
            many=True,
        ),
        Operation(
            "item", QUERY, "Item", (_id("id", True),),
            lambda ctx, a: ctx.selector.get_item(a["id"]),
        ),
        Operation(
            "items", QUERY, "Item", (_id("container"), *_PAGING),
            lambda ctx, a: ctx.selector.list_items(container_id=a.get("container"), **_paging(a)),
            many=True,
        ),
        Operation(
            "node", QUERY, NODE_TYPE, (_id("id", True),),
            lambda ctx, a: ctx.selector.get(a["id"]),
        ),
        Operation(
            "containerTotals", QUERY, "ContainerTotals", (_id("id", True),),
            lambda ctx, a: ctx.totals.container_totals(a["id"]),
        ),
        Operation(
            "locationTotals", QUERY, "LocationTotals", (_id("id", True),),
            lambda ctx, a: ctx.totals.location_totals(a["id"]),
        ),
        Operation(
            "unassignedTotals", QUERY, "LocationTotals", (),
            lambda ctx, a: ctx.totals.unassigned_totals(),
        ),
        Operation(
            "label", QUERY, "Label", (_id("id", True),),
            lambda ctx, a: ctx.labels.label_for(a["id"]),
        ),
        Operation(
            "resolveLabel", QUERY, NODE_TYPE, (_str("payload", True),),
            lambda ctx, a: ctx.labels.resolve_scan(a["payload"]),
        ),
        # Mutations
        Operation(
            "createLocation", MUTATION, "Location", (_str("name", True),),
            lambda ctx, a: ctx.hierarchy.create_location(a["name"]),
        ),
        Operation(
            "updateLocation", MUTATION, "Location", (_id("id", True), _str("name")),
            lambda ctx, a: ctx.hierarchy.update_location(a["id"], **_updates(a, {"name": "name"})),
        ),
        Operation(
            "deleteLocation", MUTATION, "DeleteResult", (_id("id", True), _bool("cascade")),
            lambda ctx, a: ctx.hierarchy.delete_location(a["id"], cascade=bool(a.get("cascade"))),
        ),
        Operation(
            "createContainer", MUTATION, "Container", (_str("name"), _id("location")),
            lambda ctx, a: ctx.hierarchy.create_container(
                name=a.get("name"), location_id=a.get("location")
            ),
        ),
        Operation(
            "updateContainer", MUTATION, "Container", (_id("id", True), _str("name"), _id("location")),
            lambda ctx, a: ctx.hierarchy.update_container(
                a["id"], **_updates(a, {"name": "name", "location": "location_id"})
            ),
        ),
        Operation(
            "deleteContainer", MUTATION, "DeleteResult", (_id("id", True), _bool("cascade")),
            lambda ctx, a: ctx.hierarchy.delete_container(a["id"], cascade=bool(a.get("cascade"))),
        ),
        Operation(
            "createItem", MUTATION, "Item",
            (_str("name", True), _id("container", True), _int("quantity"), _str("description")),
            lambda ctx, a: ctx.hierarchy.create_item(
                name=a["name"],
                container_id=a["container"],
                quantity=a["quantity"] if a.get("quantity") is not None else 1,
                description=a.get("description"),
            ),
        ),
        Operation(
            "updateItem", MUTATION, "Item",
            (_id("id", True), _str("name"), _str("description"), _int("quantity"), _id("container")),
            lambda ctx, a: ctx.hierarchy.update_item(
                a["id"],
                **_updates(
                    a,
                    {
                        "name": "name",
                        "description": "description",
                        "quantity": "quantity",
                        "container": "container_id",
                    },
                ),
            ),
        ),
        Operation(
            "deleteItem", MUTATION, "DeleteResult", (_id("id", True),),
            lambda ctx, a: ctx.hierarchy.delete_item(a["id"]),
        ),
    )
}


# ---------------------------------------------------------------------------
# Per-request context and rendering
# ---------------------------------------------------------------------------


class RequestContext:
    """Everything one request needs, bound to that request's session."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        identifiers: IdentifierService,
        cache: KeyValueStore | None,
        codec: SymbolCodec,
        cache_ttl: int,
    ):
        self.session = session
        self.hierarchy = HierarchyService(session, clock, identifiers)
        self.selector = HierarchySelector(session)
        self.totals = TotalsSelector(session)
        self.labels = LabelService(session, cache=cache, codec=codec, ttl_seconds=cache_ttl)

    # Rendering -----------------------------------------------------------

    def render(self, type_name: str, value: Any, selection: Selection | None, raw_fields: Any = None) -> Any:
        if value is None:
            return None
        if type_name == NODE_TYPE:
            kind = value.kind.value
            rendered = self.render(kind, value, parse_selection(kind, raw_fields))
            return {"__typename": kind, **rendered}
        return {sel.name: self._field(type_name, value, sel) for sel in selection}

    def render_many(self, type_name: str, values: Iterable[Any], selection: Selection) -> list[Any]:
        return [self.render(type_name, v, selection) for v in values]

    def _field(self, type_name: str, value: Any, sel) -> Any:
        spec = SCHEMA[type_name].fields[sel.name]
        if spec.is_scalar:
            return _json(_SCALARS[type_name][sel.name](value))

        if sel.children is None and not spec.many:
            return _json(_REFERENCE_IDS[type_name][sel.name](value))

        related = _RELATIONS[type_name][sel.name](self, value)
        if sel.children is None:
            return [str(r.id) for r in related]
        if spec.many:
            return self.render_many(spec.target, related, sel.children)
        return self.render(spec.target, related, sel.children)


def _json(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, EntityKind):
        return value.value
    if isinstance(value, bytes):
        return value.decode("ascii")
    return value


_SCALARS: dict[str, dict[str, Callable[[Any], Any]]] = {
    "Location": {
        "id": lambda v: v.id,
        "name": lambda v: v.name,
    },
    "Container": {
        "id": lambda v: v.id,
        "created": lambda v: v.created,
        "updated": lambda v: v.updated,
        "name": lambda v: v.name,
    },
    "Item": {
        "id": lambda v: v.id,
        "created": lambda v: v.created,
        "updated": lambda v: v.updated,
        "name": lambda v: v.name,
        "description": lambda v: v.description,
        "quantity": lambda v: v.quantity,
    },
    "ContainerTotals": {
        "itemCount": lambda v: v.item_count,
        "totalQuantity": lambda v: v.total_quantity,
    },
    "LocationTotals": {
        "containerCount": lambda v: v.container_count,
        "itemCount": lambda v: v.item_count,
        "totalQuantity": lambda v: v.total_quantity,
    },
    "Label": {
        "id": lambda v: v.id,
        "kind": lambda v: v.kind,
        "payload": lambda v: v.payload,
    },
    "DeleteResult": {
        "id": lambda v: v.id,
        "kind": lambda v: v.kind,
        "deletedItemCount": lambda v: v.deleted_item_count,
        "unassignedContainerCount": lambda v: v.unassigned_container_count,
    },
}


_REFERENCE_IDS: dict[str, dict[str, Callable[[Any], UUID | None]]] = {
    "Container": {"location": lambda v: v.location_id},
    "Item": {"container": lambda v: v.container_id},
}


def _location_of(ctx: RequestContext, container: ContainerInfo) -> LocationInfo | None:
    if container.location_id is None:
        return None
    return ctx.selector.get_location(container.location_id)


_RELATIONS: dict[str, dict[str, Callable[[RequestContext, Any], Any]]] = {
    "Location": {
        "containers": lambda ctx, v: ctx.selector.list_containers(location_id=v.id),
        "totals": lambda ctx, v: ctx.totals.location_totals(v.id),
    },
    "Container": {
        "location": _location_of,
        "items": lambda ctx, v: ctx.selector.list_items(container_id=v.id),
        "totals": lambda ctx, v: ctx.totals.container_totals(v.id),
        "label": lambda ctx, v: ctx.labels.label_for(v.id),
    },
    "Item": {
        "container": lambda ctx, v: ctx.selector.get_container(v.container_id),
        "label": lambda ctx, v: ctx.labels.label_for(v.id),
    },
}


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class InventoryFacade:
    """
    Single entry point for API documents.

    Thread-safe: holds no per-request state.  Each ``execute`` call opens
    its own session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        identifiers: IdentifierService | None = None,
        cache: KeyValueStore | None = None,
        cache_ttl: int = DEFAULT_TTL_SECONDS,
        codec: SymbolCodec | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._ids = identifiers or IdentifierService()
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._codec = codec or SymbolCodec()

    def execute(self, document: Any, request_id: str | None = None) -> dict[str, Any]:
        request_id = request_id or uuid4().hex
        operation_name = document.get("operation") if isinstance(document, Mapping) else None
        arguments = document.get("arguments") if isinstance(document, Mapping) else None
        entity_id = arguments.get("id") if isinstance(arguments, Mapping) else None
        started = time.perf_counter()

        with LogContext.bind(
            request_id=request_id,
            operation=operation_name if isinstance(operation_name, str) else None,
            entity_id=entity_id if isinstance(entity_id, str) else None,
        ):
            try:
                data = self._run(document)
            except HomeboxError as exc:
                log = logger.warning if exc.kind == "StoreUnavailable" else logger.info
                log(
                    "request_failed",
                    extra={
                        "error_kind": exc.kind,
                        "error_code": exc.code,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                    },
                )
                return {"error": {"kind": exc.kind, "code": exc.code, "message": exc.message}}

            logger.info(
                "request_completed",
                extra={"duration_ms": round((time.perf_counter() - started) * 1000, 3)},
            )
            return {"data": data}

    def _run(self, document: Any) -> Any:
        operation, arguments = self._parse_document(document)
        raw_fields = document.get("fields")
        selection = None
        if operation.result != NODE_TYPE:
            selection = parse_selection(operation.result, raw_fields)

        with session_scope(
            self._session_factory, read_only=operation.kind == QUERY
        ) as session:
            ctx = RequestContext(
                session, self._clock, self._ids, self._cache, self._codec, self._cache_ttl
            )
            result = operation.handler(ctx, arguments)
            if operation.many:
                return ctx.render_many(operation.result, result, selection)
            return ctx.render(operation.result, result, selection, raw_fields)

    def _parse_document(self, document: Any) -> tuple[Operation, dict[str, Any]]:
        if not isinstance(document, Mapping):
            raise InvalidArgumentError("document", "must be an object")
        unknown = set(document) - _DOCUMENT_KEYS
        if unknown:
            raise InvalidArgumentError("document", f"unknown key(s): {', '.join(sorted(map(str, unknown)))}")

        name = document.get("operation")
        if not isinstance(name, str) or name not in OPERATIONS:
            raise UnknownOperationError(name)
        operation = OPERATIONS[name]

        declared_type = document.get("type")
        if declared_type is not None and declared_type != operation.kind:
            raise InvalidArgumentError("type", f"'{name}' is a {operation.kind}, not {declared_type!r}")

        raw_args = document.get("arguments")
        if raw_args is None:
            raw_args = {}
        if not isinstance(raw_args, Mapping):
            raise InvalidArgumentError("arguments", "must be an object")
        return operation, self._check_arguments(operation, raw_args)

    def _check_arguments(self, operation: Operation, raw: Mapping[str, Any]) -> dict[str, Any]:
        declared = {a.name: a for a in operation.arguments}
        for key in raw:
            if key not in declared:
                raise InvalidArgumentError(key, f"not accepted by '{operation.name}'")

        checked: dict[str, Any] = {}
        for arg in operation.arguments:
            if arg.name not in raw:
                if arg.required:
                    raise InvalidArgumentError(arg.name, "is required")
                continue
            value = raw[arg.name]
            if value is None:
                if arg.required:
                    raise InvalidArgumentError(arg.name, "must not be null")
                checked[arg.name] = None
                continue
            checked[arg.name] = self._coerce(arg, value)
        return checked

    def _coerce(self, arg: Argument, value: Any) -> Any:
        if arg.type == "ID":
            if not isinstance(value, str):
                raise InvalidArgumentError(arg.name, "must be an identifier string")
            return self._ids.parse(value)
        if arg.type == "String":
            if not isinstance(value, str):
                raise InvalidArgumentError(arg.name, "must be a string")
            return value
        if arg.type == "Int":
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidArgumentError(arg.name, "must be an integer")
            return value
        if arg.type == "Boolean":
            if not isinstance(value, bool):
                raise InvalidArgumentError(arg.name, "must be a boolean")
            return value
        raise InvalidArgumentError(arg.name, f"unsupported argument type {arg.type}")

    def ping(self) -> None:
        """
        Raises:
            StoreUnavailableError: the relational store cannot be reached.
        """
        with session_scope(self._session_factory, read_only=True) as session:
            session.execute(text("SELECT 1"))

    # Introspection -------------------------------------------------------

    def describe(self) -> dict[str, Any]:
        """Operation and type catalogue."""
        return {
            "queries": [op.describe() for op in OPERATIONS.values() if op.kind == QUERY],
            "mutations": [op.describe() for op in OPERATIONS.values() if op.kind == MUTATION],
            "types": {**describe_types(), NODE_TYPE: list(NODE_KINDS)},
        }

    def sdl(self) -> str:
        """The catalogue as schema-definition text."""
        lines: list[str] = []
        for name, fields in describe_types().items():
            lines.append(f"type {name} {{")
            lines.extend(f"  {field}: {kind}" for field, kind in fields.items())
            lines.append("}")
            lines.append("")
        lines.append(f"union {NODE_TYPE} = {' | '.join(NODE_KINDS)}")
        lines.append("")
        for title, kind in (("Query", QUERY), ("Mutation", MUTATION)):
            lines.append(f"type {title} {{")
            for op in OPERATIONS.values():
                if op.kind != kind:
                    continue
                described = op.describe()
                args = ", ".join(described["arguments"])
                signature = f"({args})" if args else ""
                lines.append(f"  {op.name}{signature}: {described['returns']}")
            lines.append("}")
            lines.append("")
        return "\n".join(lines)

