"""Capability contracts targeted by generated companion types.

Two capabilities are implemented for every companion:

- ``OperationInput`` contributes text to an OpenAPI ``Operation`` when a
  route is registered.
- ``FromRequestParts`` builds a value from an incoming request; companions
  implement it infallibly, so their ``Rejection`` is ``Infallible``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Never, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from fastapi.openapi.models import Operation
    from starlette.requests import Request

Infallible = Never


@runtime_checkable
class OperationInput(Protocol):
    """Contributes metadata to the OpenAPI operation of a route."""

    @classmethod
    def operation_input(cls, ctx: Any, operation: Operation) -> None: ...


@runtime_checkable
class FromRequestParts(Protocol):
    """Builds a handler argument from request parts and shared app state."""

    @classmethod
    async def from_request_parts(cls, parts: Request, state: Any) -> Self: ...


class Companion:
    """Base of every synthesized companion type.

    Companions have no fields and exactly one value: ``Cls()`` always
    returns the same instance as ``Cls.default()``.
    """

    __slots__ = ()

    summary: ClassVar[str | None] = None
    description: ClassVar[str | None] = None
    target: ClassVar[str] = ""
    Rejection: ClassVar[Any] = Infallible

    _default: ClassVar[Companion]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._default = object.__new__(cls)

    def __new__(cls) -> Self:
        if cls is Companion:
            raise TypeError("Companion cannot be instantiated directly")
        return cls._default  # type: ignore[return-value]

    @classmethod
    def default(cls) -> Self:
        """Return the canonical value of this companion type."""
        return cls()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
