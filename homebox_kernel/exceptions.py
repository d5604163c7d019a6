"""
Typed Exception Hierarchy for the Homebox Kernel.

===============================================================================
TAXONOMY
===============================================================================

Every failure the kernel reports belongs to exactly one of five kinds. The
kind is what crosses the API boundary; the concrete class and its ``code``
carry the detail.

    HomeboxError (base)
    |
    +-- ValidationError            kind=ValidationError
    |   +-- InvalidNameError
    |   +-- InvalidQuantityError
    |   +-- InvalidIdentifierError
    |   +-- ImmutableFieldError
    |   +-- InvalidArgumentError
    |   +-- UnknownOperationError
    |
    +-- NotFoundError              kind=NotFoundError
    |   +-- LocationNotFoundError
    |   +-- ContainerNotFoundError
    |   +-- ItemNotFoundError
    |   +-- EntityNotFoundError
    |
    +-- ConflictError              kind=ConflictError
    |   +-- LocationNotEmptyError
    |   +-- ContainerNotEmptyError
    |
    +-- DecodeError                kind=DecodeError
    |   +-- MalformedSymbolError
    |   +-- UnsupportedSymbolVersionError
    |   +-- SymbolChecksumError
    |
    +-- StoreUnavailableError      kind=StoreUnavailable

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind             | Code                       | When Raised
-----------------|----------------------------|-----------------------------------
Validation       | INVALID_NAME               | Empty / oversize name
                 | INVALID_QUANTITY           | Negative, non-integer, too large
                 | INVALID_IDENTIFIER         | Not parseable as a 128-bit UUID
                 | IMMUTABLE_FIELD            | Attempt to change a primary key
                 | INVALID_ARGUMENT           | Bad request argument / document
                 | UNKNOWN_OPERATION          | Request names no known operation
-----------------|----------------------------|-----------------------------------
NotFound         | LOCATION_NOT_FOUND         | Location id does not resolve
                 | CONTAINER_NOT_FOUND        | Container id does not resolve
                 | ITEM_NOT_FOUND             | Item id does not resolve
                 | ENTITY_NOT_FOUND           | Id resolves to no entity of any kind
-----------------|----------------------------|-----------------------------------
Conflict         | LOCATION_NOT_EMPTY         | Non-cascading delete, containers remain
                 | CONTAINER_NOT_EMPTY        | Non-cascading delete, items remain
-----------------|----------------------------|-----------------------------------
Decode           | MALFORMED_SYMBOL           | Payload shape / alphabet invalid
                 | UNSUPPORTED_SYMBOL_VERSION | Header names an unknown version
                 | SYMBOL_CHECKSUM_MISMATCH   | Payload corrupted
-----------------|----------------------------|-----------------------------------
StoreUnavailable | STORE_UNAVAILABLE          | Backing store transient failure

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        service.delete_container(container_id)
    except ContainerNotEmptyError as e:
        ask_user_to_cascade(e.container_id, e.item_count)
    except NotFoundError:
        show_gone()
    except StoreUnavailableError:
        retry_whole_operation()   # atomic, never partially applied
"""


class HomeboxError(Exception):
    """
    Base exception for all Homebox kernel errors.

    ``code`` identifies the concrete failure; ``kind`` names the API-level
    category and is one of ValidationError, NotFoundError, ConflictError,
    DecodeError, StoreUnavailable.
    """

    code: str = "HOMEBOX_ERROR"
    kind: str = "HomeboxError"

    @property
    def message(self) -> str:
        return str(self)


# Validation


class ValidationError(HomeboxError):
    """Malformed or out-of-range input. Recoverable by correcting the input."""

    code: str = "VALIDATION_ERROR"
    kind: str = "ValidationError"


class InvalidNameError(ValidationError):
    """Name is empty, blank, or too long."""

    code: str = "INVALID_NAME"

    def __init__(self, entity_type: str, reason: str):
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(f"Invalid {entity_type} name: {reason}")


class InvalidQuantityError(ValidationError):
    """Quantity is not a non-negative integer within range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


class InvalidIdentifierError(ValidationError):
    """Value cannot be interpreted as an entity identifier."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid identifier: {value!r}")


class ImmutableFieldError(ValidationError):
    """An immutable field (primary key) was about to be rewritten."""

    code: str = "IMMUTABLE_FIELD"

    def __init__(self, entity_type: str, entity_id: str, field: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.field = field
        super().__init__(
            f"Field '{field}' of {entity_type} {entity_id} is immutable"
        )


class InvalidArgumentError(ValidationError):
    """A request argument is missing, unknown, or of the wrong type."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, argument: str, reason: str):
        self.argument = argument
        self.reason = reason
        super().__init__(f"Invalid argument '{argument}': {reason}")


class UnknownOperationError(ValidationError):
    """The request names an operation the API does not define."""

    code: str = "UNKNOWN_OPERATION"

    def __init__(self, operation: object):
        self.operation = operation
        super().__init__(f"Unknown operation: {operation!r}")


# Not found


class NotFoundError(HomeboxError):
    """A referenced identifier does not currently exist."""

    code: str = "NOT_FOUND"
    kind: str = "NotFoundError"

    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class LocationNotFoundError(NotFoundError):
    code: str = "LOCATION_NOT_FOUND"
    entity_type: str = "location"


class ContainerNotFoundError(NotFoundError):
    code: str = "CONTAINER_NOT_FOUND"
    entity_type: str = "container"


class ItemNotFoundError(NotFoundError):
    code: str = "ITEM_NOT_FOUND"
    entity_type: str = "item"


class EntityNotFoundError(NotFoundError):
    """Identifier resolves to no location, container, or item."""

    code: str = "ENTITY_NOT_FOUND"


# Conflict


class ConflictError(HomeboxError):
    """A non-cascading delete is blocked by live dependents."""

    code: str = "CONFLICT"
    kind: str = "ConflictError"


class LocationNotEmptyError(ConflictError):
    """Containers still reference the location."""

    code: str = "LOCATION_NOT_EMPTY"

    def __init__(self, location_id: str, container_count: int):
        self.location_id = location_id
        self.container_count = container_count
        super().__init__(
            f"Location {location_id} still holds {container_count} container(s); "
            "delete with cascade to unassign them"
        )


class ContainerNotEmptyError(ConflictError):
    """Items still reference the container."""

    code: str = "CONTAINER_NOT_EMPTY"

    def __init__(self, container_id: str, item_count: int):
        self.container_id = container_id
        self.item_count = item_count
        super().__init__(
            f"Container {container_id} still holds {item_count} item(s); "
            "delete with cascade to remove them"
        )


# Decode


class DecodeError(HomeboxError):
    """An optical-code payload could not be turned back into an identifier."""

    code: str = "DECODE_ERROR"
    kind: str = "DecodeError"


class MalformedSymbolError(DecodeError):
    """Payload has the wrong type, length, header, or alphabet."""

    code: str = "MALFORMED_SYMBOL"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed symbol payload: {reason}")


class UnsupportedSymbolVersionError(DecodeError):
    code: str = "UNSUPPORTED_SYMBOL_VERSION"

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Unsupported symbol version: {version!r}")


class SymbolChecksumError(DecodeError):
    """Payload decoded but its checksum does not match (corruption)."""

    code: str = "SYMBOL_CHECKSUM_MISMATCH"

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Symbol checksum mismatch: expected {expected:08x}, received {received:08x}"
        )


# Store


class StoreUnavailableError(HomeboxError):
    """
    Backing store transient failure (lock timeout, lost connection,
    serialization failure). The failed operation was rolled back as a whole
    and is safe to retry.
    """

    code: str = "STORE_UNAVAILABLE"
    kind: str = "StoreUnavailable"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Backing store unavailable: {reason}")


API_ERROR_KINDS: tuple[str, ...] = (
    ValidationError.kind,
    NotFoundError.kind,
    ConflictError.kind,
    DecodeError.kind,
    StoreUnavailableError.kind,
)
