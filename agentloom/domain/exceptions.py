"""Domain-layer exceptions.

Domain operations raise these; the memory services catch them and turn
them into structured ``{success, message}`` results for agent-facing
tools. Nothing in the domain layer knows about workflows or tools.
"""


class DomainException(Exception):
    """Base for all expected, recoverable domain failures."""


class EntityNotFoundError(DomainException):
    """Entity not found (or soft-deleted)."""

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        msg = f"{entity} {entity_id} not found" if entity_id else f"{entity} not found"
        super().__init__(msg)


class DuplicateEntityError(DomainException):
    """Duplicate entity or constraint violation."""

    def __init__(self, entity: str, detail: str = ""):
        self.entity = entity
        self.detail = detail
        msg = f"Duplicate {entity}: {detail}" if detail else f"Duplicate {entity}"
        super().__init__(msg)


class DomainValidationError(DomainException):
    """Business-rule validation failure."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ReadOnlyBlockError(DomainException):
    """Mutation attempted against a read-only memory block."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Block '{label}' is read-only")


class BlockLimitExceededError(DomainException):
    """Resulting block value would exceed the block's character limit."""

    def __init__(self, operation: str, size: int, limit: int):
        self.operation = operation
        self.size = size
        self.limit = limit
        super().__init__(f"{operation} would exceed limit: {size} > {limit}")


class AmbiguousMatchError(DomainException):
    """Text to replace occurs more than once."""

    def __init__(self, occurrences: int):
        self.occurrences = occurrences
        super().__init__(f"Multiple occurrences ({occurrences}) found. Please be more specific.")
