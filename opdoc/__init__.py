"""opdoc - OpenAPI summaries and descriptions from handler docstrings.

The first paragraph of a handler's docstring becomes the operation summary
and the rest becomes the description::

    from fastapi import APIRouter
    from opdoc import DocumentedRoute, opdoc

    router = APIRouter(route_class=DocumentedRoute)

    @router.get("/")
    @opdoc
    async def hello() -> str:
        \"\"\"Say hello.

        Returns a friendly greeting.
        \"\"\"
        return "hello world"
"""

from opdoc.capabilities import Companion, FromRequestParts, Infallible, OperationInput
from opdoc.comments import extract_fragments, fragments_from_node, parse_doc, split_doc
from opdoc.config import OpDocConfig, load_config
from opdoc.exceptions import ConfigurationError, OpDocError, ParseError, TransformError
from opdoc.models import CommentFragment, OperationDoc
from opdoc.routing import (
    DocumentedRoute,
    apply_operation_doc,
    companion_of,
    companion_param,
    document_routes,
    iter_api_routes,
    request_dependency,
)
from opdoc.source import find_marked, transform_source
from opdoc.transform import Expansion, companion_name, make_companion, opdoc, transform

__version__ = "0.1.0"

__all__ = [
    "CommentFragment",
    "Companion",
    "ConfigurationError",
    "DocumentedRoute",
    "Expansion",
    "FromRequestParts",
    "Infallible",
    "OpDocConfig",
    "OpDocError",
    "OperationDoc",
    "OperationInput",
    "ParseError",
    "TransformError",
    "apply_operation_doc",
    "companion_name",
    "companion_of",
    "companion_param",
    "document_routes",
    "extract_fragments",
    "find_marked",
    "fragments_from_node",
    "iter_api_routes",
    "load_config",
    "make_companion",
    "opdoc",
    "parse_doc",
    "request_dependency",
    "split_doc",
    "transform",
    "transform_source",
]
