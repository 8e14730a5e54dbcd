"""Error types for entity validation and pipeline faults."""


class EntityError(Exception):
    """Base class for problems attached to a single entity."""

    def __init__(
        self, message: str, field: str = "", value: str = "", entity_id: str = ""
    ) -> None:
        super().__init__(message)
        self.field = field
        self.value = value
        self.entity_id = entity_id
        self.filename = ""

    @property
    def error_type(self) -> str:
        return type(self).__name__


class ParseError(EntityError):
    """A source row value could not be parsed."""

    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"could not parse field '{field}' value '{value}'", field, value)


class RequiredFieldError(EntityError):
    """A required field is empty."""

    def __init__(self, field: str) -> None:
        super().__init__(f"required field '{field}' is empty", field)


class InvalidFieldError(EntityError):
    """A field value is out of range or inconsistent."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        super().__init__(f"invalid value for '{field}': {reason}", field, str(value))


class InvalidReferenceError(EntityError):
    """A reference to another entity could not be resolved."""

    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"reference '{field}' to '{value}' could not be resolved", field, value)


class InterpolationError(EntityError):
    """Stop times for a trip could not be interpolated."""


class CopierError(Exception):
    """Systemic fault that aborts a copy run."""


class HookError(CopierError):
    """A builder hook raised; wraps the original exception."""

    def __init__(self, hook: str, ext: object, cause: Exception) -> None:
        super().__init__(f"{type(ext).__name__}.{hook} failed: {cause}")
        self.hook = hook
        self.ext = ext
        self.__cause__ = cause
