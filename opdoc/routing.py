"""FastAPI wiring for companion types.

Register documented handlers through a router that uses
:class:`DocumentedRoute`::

    router = APIRouter(route_class=DocumentedRoute)

    @router.get("/items/{item_id}")
    @opdoc
    async def read_item(item_id: int) -> dict:
        \"\"\"Read one item.

        Looks the item up by its numeric id.
        \"\"\"
        ...

Routes added with the default route class can be documented afterwards
with :func:`document_routes`.
"""

from __future__ import annotations

import inspect
import typing
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.openapi.models import Operation
from fastapi.routing import APIRoute

from opdoc.capabilities import Companion
from opdoc.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from fastapi import APIRouter
    from fastapi.params import Depends as DependsParam

logger = get_logger(__name__)

COMPANION_ATTR = "__opdoc_companion__"


def companion_of(endpoint: Any) -> type[Companion] | None:
    """Return the companion type of a rewritten endpoint, if any.

    Endpoints built by ``@opdoc`` carry it as an attribute; endpoints from
    expanded source are recognised by their first parameter's annotation.
    """
    companion = getattr(endpoint, COMPANION_ATTR, None)
    if companion is not None:
        return companion

    try:
        params = list(inspect.signature(endpoint).parameters.values())
    except (TypeError, ValueError):
        return None
    if not params:
        return None

    try:
        hints = typing.get_type_hints(endpoint, include_extras=True)
    except Exception:
        hints = {}
    annotation = hints.get(params[0].name, params[0].annotation)
    if typing.get_origin(annotation) is Annotated:
        annotation = typing.get_args(annotation)[0]
    if isinstance(annotation, type) and issubclass(annotation, Companion):
        return annotation
    return None


def request_dependency(companion: type[Companion]) -> DependsParam:
    """Wrap the companion's request extractor as a FastAPI dependency."""

    async def extract(request: Request) -> Any:
        return await companion.from_request_parts(request, request.app.state)

    extract.__name__ = f"extract_{companion.__name__}"
    extract.__qualname__ = f"{companion.__qualname__}.extract"
    return Depends(extract)


def companion_param(companion: type[Companion]) -> Any:
    """Annotation for the injected companion parameter."""
    return Annotated[companion, request_dependency(companion)]


def apply_operation_doc(route: APIRoute) -> bool:
    """Let the endpoint's companion fill in the route summary and description.

    The text is written to the route attributes and merged into
    ``route.openapi_extra``, which FastAPI copies whenever it rebuilds a
    route for ``include_router`` and applies last when generating the
    schema. A ``None`` field leaves FastAPI's own default in place; an
    empty summary keeps the generated one.

    Returns
    -------
    bool
        True if the endpoint carried a companion
    """
    companion = companion_of(route.endpoint)
    if companion is None:
        return False

    operation = Operation()
    companion.operation_input(route, operation)

    extra: dict[str, Any] = {}
    if operation.summary is not None:
        route.summary = operation.summary
        if operation.summary:
            extra["summary"] = operation.summary
    if operation.description is not None:
        route.description = operation.description
        extra["description"] = operation.description
    if extra:
        route.openapi_extra = {**(route.openapi_extra or {}), **extra}

    logger.debug(
        "Documented route {path} from {companion}",
        path=route.path,
        companion=companion.__name__,
    )
    return True


class DocumentedRoute(APIRoute):
    """APIRoute that applies companion metadata when it is registered."""

    def __init__(self, path: str, endpoint: Any, **kwargs: Any) -> None:
        super().__init__(path, endpoint, **kwargs)
        apply_operation_doc(self)


def iter_api_routes(routes: Iterable[Any]) -> Iterator[APIRoute]:
    """Yield each ``APIRoute`` once, descending into included routers.

    Depending on the FastAPI release, ``include_router`` either copies the
    routes into the parent or keeps one entry pointing at the router
    through ``original_router``. Both layouts are walked.
    """
    seen: set[int] = set()

    def walk(entries: Iterable[Any]) -> Iterator[APIRoute]:
        for route in entries:
            if isinstance(route, APIRoute):
                if id(route) not in seen:
                    seen.add(id(route))
                    yield route
            elif (router := getattr(route, "original_router", None)) is not None:
                yield from walk(router.routes)

    yield from walk(routes)


def document_routes(app: FastAPI | APIRouter) -> int:
    """Apply companion metadata to every API route already registered.

    Included routers are searched too. Call it before the app serves its
    first request; a cached OpenAPI schema is cleared so the next request
    regenerates it.

    Returns
    -------
    int
        Number of routes documented
    """
    count = sum(apply_operation_doc(route) for route in iter_api_routes(app.routes))
    if isinstance(app, FastAPI):
        app.openapi_schema = None
    logger.debug("Documented {count} route(s)", count=count)
    return count
