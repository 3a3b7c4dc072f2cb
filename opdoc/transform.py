"""Runtime declaration transformer and the ``@opdoc`` decorator.

``@opdoc`` reads the handler's docstring, synthesizes a zero-field
companion type that implements both capabilities of
:mod:`opdoc.capabilities`, and returns a rewritten endpoint whose first
parameter is that companion::

    @router.get("/items/{item_id}")
    @opdoc
    async def read_item(item_id: int) -> dict:
        \"\"\"Read one item.

        Looks the item up by its numeric id.
        \"\"\"

    # FastAPI now sees: read_item(_: read_item_OpDoc, item_id: int) -> dict

The companion class is never bound to a name in any namespace, so it
cannot capture or shadow user identifiers.
"""

from __future__ import annotations

import functools
import inspect
import typing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from opdoc.capabilities import Companion, Infallible
from opdoc.comments import extract_fragments, split_doc
from opdoc.config import OpDocConfig, load_config
from opdoc.exceptions import ParseError, TransformError
from opdoc.logging import get_logger
from opdoc.models import OperationDoc
from opdoc.routing import COMPANION_ATTR, companion_param

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)

COMPANION_PARAM = "_"


@dataclass(frozen=True, slots=True)
class Expansion:
    """Result of rewriting one declaration.

    Attributes
    ----------
    companion : type[Companion]
        The synthesized companion type
    endpoint : Callable
        The rewritten function, companion inserted at parameter 0
    target : Callable
        The original, unmodified function
    doc : OperationDoc
        The documentation the companion was populated from
    """

    companion: type[Companion]
    endpoint: Callable[..., Any]
    target: Callable[..., Any]
    doc: OperationDoc


def companion_name(target_name: str, suffix: str = "_OpDoc") -> str:
    """Derive the companion type name for a function name."""
    return f"{target_name}{suffix}"


def doc_value(text: str, *, omit_empty: bool = False) -> str | None:
    """Value assigned to an operation field for ``text``."""
    if omit_empty and not text:
        return None
    return text


def make_companion(
    target: Callable[..., Any],
    summary: str,
    description: str,
    *,
    config: OpDocConfig | None = None,
) -> type[Companion]:
    """Synthesize the companion type for ``target``.

    The returned class implements ``OperationInput`` (writing ``summary``
    and ``description`` into the operation) and ``FromRequestParts``
    (always yielding the singleton value).
    """
    config = config or load_config()
    name = companion_name(target.__name__, config.suffix)
    summary_value = doc_value(summary, omit_empty=config.omit_empty)
    description_value = doc_value(description, omit_empty=config.omit_empty)

    def operation_input(cls: type[Companion], ctx: Any, operation: Any) -> None:
        operation.summary = summary_value
        operation.description = description_value

    async def from_request_parts(cls: type[Companion], parts: Any, state: Any) -> Companion:
        return cls.default()

    namespace = {
        "__module__": target.__module__,
        "__qualname__": companion_name(target.__qualname__, config.suffix),
        "__doc__": f"Companion type for ``{target.__qualname__}``.",
        "__slots__": (),
        "summary": summary_value,
        "description": description_value,
        "target": target.__qualname__,
        "Rejection": Infallible,
        "operation_input": classmethod(operation_input),
        "from_request_parts": classmethod(from_request_parts),
    }
    return type(name, (Companion,), namespace)


def transform(
    func: Any,
    summary: str,
    description: str,
    *,
    config: OpDocConfig | None = None,
) -> Expansion:
    """Rewrite ``func`` so its first parameter is a new companion type.

    Parameters
    ----------
    func : Any
        A ``def`` or ``async def`` function
    summary : str
        Operation summary the companion will provide
    description : str
        Operation description the companion will provide
    config : OpDocConfig | None
        Settings; loaded with :func:`opdoc.config.load_config` when omitted

    Returns
    -------
    Expansion
        The companion, the rewritten endpoint and the untouched original

    Raises
    ------
    ParseError
        If ``func`` is not a function or its signature cannot be read
    TransformError
        If the companion parameter cannot be inserted
    """
    if not inspect.isfunction(func):
        subject = getattr(func, "__qualname__", None) or type(func).__name__
        logger.warning("Rejected non-function target {subject}", subject=subject)
        raise ParseError(subject, "@opdoc can only be applied to a def or async def function")

    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError) as e:
        raise ParseError(func.__qualname__, f"signature is not readable: {e}") from e

    config = config or load_config()
    hints = _resolve_hints(func)
    companion = make_companion(func, summary, description, config=config)
    new_signature = _insert_companion(func, signature, hints, companion)
    endpoint = _build_endpoint(func, new_signature, companion)

    logger.debug(
        "Rewrote {target}: companion={companion}, parameters={count}",
        target=func.__qualname__,
        companion=companion.__name__,
        count=len(new_signature.parameters),
    )
    doc = OperationDoc(
        name=func.__name__,
        summary=summary,
        description=description,
        fragments=extract_fragments(func),
    )
    return Expansion(companion=companion, endpoint=endpoint, target=func, doc=doc)


def opdoc(func: Callable[..., Any] | None = None) -> Callable[..., Any]:
    """Document a handler from its docstring and return the rewritten endpoint.

    The first paragraph of the docstring becomes the operation summary and
    everything after the first blank line becomes the description.
    The decorator takes no arguments.

    Raises
    ------
    ParseError
        If applied to anything other than a function (including ``@opdoc()``)
    TransformError
        If the function already has a parameter named ``_``
    """
    if func is None:
        raise ParseError("opdoc", "@opdoc takes no arguments, use it bare")
    summary, description = split_doc(extract_fragments(func))
    return transform(func, summary, description).endpoint


def _resolve_hints(func: Callable[..., Any]) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func, include_extras=True)
    except Exception as e:
        # Forward references to names defined later stay as strings
        logger.debug(
            "Could not resolve annotations of {target}: {error}",
            target=func.__qualname__,
            error=e,
        )
        return {}


def _insert_companion(
    func: Callable[..., Any],
    signature: inspect.Signature,
    hints: dict[str, Any],
    companion: type[Companion],
) -> inspect.Signature:
    params = list(signature.parameters.values())
    if COMPANION_PARAM in signature.parameters:
        logger.warning("Parameter '_' already present on {target}", target=func.__qualname__)
        raise TransformError(func.__qualname__, f"a parameter named {COMPANION_PARAM!r} already exists")

    kind = inspect.Parameter.POSITIONAL_OR_KEYWORD
    if params and params[0].kind is inspect.Parameter.POSITIONAL_ONLY:
        kind = inspect.Parameter.POSITIONAL_ONLY

    injected = inspect.Parameter(COMPANION_PARAM, kind, annotation=companion_param(companion))
    resolved = [
        param.replace(annotation=hints[param.name]) if param.name in hints else param
        for param in params
    ]
    return_annotation = hints.get("return", signature.return_annotation)

    try:
        return signature.replace(
            parameters=[injected, *resolved],
            return_annotation=return_annotation,
        )
    except ValueError as e:
        raise TransformError(func.__qualname__, str(e)) from e


def _strip_companion(args: tuple[Any, ...], kwargs: dict[str, Any]) -> tuple[Any, ...]:
    if COMPANION_PARAM in kwargs:
        del kwargs[COMPANION_PARAM]
        return args
    return args[1:]


def _build_endpoint(
    func: Callable[..., Any],
    signature: inspect.Signature,
    companion: type[Companion],
) -> Callable[..., Any]:
    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def endpoint(*args: Any, **kwargs: Any) -> Any:
            args = _strip_companion(args, kwargs)
            return await func(*args, **kwargs)

    else:

        @functools.wraps(func)
        def endpoint(*args: Any, **kwargs: Any) -> Any:
            args = _strip_companion(args, kwargs)
            return func(*args, **kwargs)

    endpoint.__signature__ = signature  # type: ignore[attr-defined]
    endpoint.__annotations__ = {
        param.name: param.annotation
        for param in signature.parameters.values()
        if param.annotation is not inspect.Parameter.empty
    }
    if signature.return_annotation is not inspect.Signature.empty:
        endpoint.__annotations__["return"] = signature.return_annotation
    setattr(endpoint, COMPANION_ATTR, companion)
    return endpoint


__all__ = [
    "COMPANION_PARAM",
    "Expansion",
    "companion_name",
    "doc_value",
    "make_companion",
    "opdoc",
    "transform",
]
