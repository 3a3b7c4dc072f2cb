"""Tests for opdoc.capabilities - the Companion base and protocols."""

from __future__ import annotations

from typing import Any

import pytest

from opdoc.capabilities import Companion, FromRequestParts, Infallible, OperationInput


class Handwritten(Companion):
    """A companion written by hand, as expanded source would."""

    __slots__ = ()
    summary = "Summary"
    description = "Description"

    @classmethod
    def operation_input(cls, ctx: Any, operation: Any) -> None:
        operation.summary = cls.summary
        operation.description = cls.description

    @classmethod
    async def from_request_parts(cls, parts: Any, state: Any) -> Handwritten:
        return cls.default()


class TestCompanion:
    """Tests for the Companion base class."""

    def test_base_cannot_be_instantiated(self) -> None:
        """Only subclasses have a value."""
        with pytest.raises(TypeError):
            Companion()

    def test_singleton(self) -> None:
        """Every construction returns the canonical value."""
        assert Handwritten() is Handwritten()
        assert Handwritten.default() is Handwritten()

    def test_no_instance_state(self) -> None:
        """Companion values have no fields."""
        with pytest.raises(AttributeError):
            Handwritten().field = 1  # type: ignore[attr-defined]

    def test_repr(self) -> None:
        """The repr reads like a constructor call."""
        assert repr(Handwritten()) == "Handwritten()"

    def test_rejection_is_infallible(self) -> None:
        """Companions declare an uninhabited rejection type."""
        assert Handwritten.Rejection is Infallible


class TestProtocols:
    """Tests for the capability protocols."""

    def test_companion_satisfies_protocols(self) -> None:
        """A companion with both methods satisfies both protocols."""
        assert isinstance(Handwritten(), OperationInput)
        assert isinstance(Handwritten(), FromRequestParts)

    def test_plain_object_does_not(self) -> None:
        """Objects without the methods do not."""
        assert not isinstance(object(), OperationInput)
        assert not isinstance(object(), FromRequestParts)

    @pytest.mark.asyncio
    async def test_extractor(self) -> None:
        """The handwritten extractor yields the singleton."""
        assert await Handwritten.from_request_parts(None, None) is Handwritten()
