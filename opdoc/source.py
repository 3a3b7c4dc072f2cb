"""Source-to-source expansion of ``@opdoc`` handlers.

This is the pre-build form of :func:`opdoc.transform.opdoc`: instead of
rewriting function objects at import time, it rewrites Python source text
so the generated declarations can be inspected or committed.

Input::

    @router.get("/items/{item_id}")
    @opdoc
    async def read_item(item_id: int) -> dict:
        \"\"\"Read one item.\"\"\"

Output::

    import opdoc as _opdoc

    class read_item_OpDoc(_opdoc.Companion):
        ...
        @classmethod
        def operation_input(cls, ctx, operation): ...
        @classmethod
        async def from_request_parts(cls, parts, state): ...

    @router.get("/items/{item_id}")
    async def read_item(_: _opdoc.companion_param(read_item_OpDoc), item_id: int) -> dict:
        \"\"\"Read one item.\"\"\"

Companion names are made unique against every identifier in the module by
appending a counter. Names introduced dynamically (``import *``,
``globals()``) are invisible to this check and can still collide.
Comments are not preserved: the output is produced by ``ast.unparse``.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from jinja2 import Environment, StrictUndefined

from opdoc.comments import fragments_from_node, split_doc
from opdoc.config import OpDocConfig, load_config
from opdoc.exceptions import ParseError, TransformError
from opdoc.logging import get_logger
from opdoc.models import OperationDoc
from opdoc.transform import COMPANION_PARAM, companion_name, doc_value

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)

MARKER = "opdoc"
RUNTIME_MODULE = "opdoc"
RUNTIME_ALIAS = "_opdoc"

_env = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)
_env.filters["pyrepr"] = repr

_COMPANION_TEMPLATE = _env.from_string(
    """\
class {{ name }}({{ runtime }}.Companion):
    {{ docstring | pyrepr }}

    __slots__ = ()
    summary = {{ summary | pyrepr }}
    description = {{ description | pyrepr }}
    target = {{ target | pyrepr }}
    Rejection = {{ runtime }}.Infallible

    @classmethod
    def operation_input(cls, ctx, operation):
        operation.summary = {{ summary | pyrepr }}
        operation.description = {{ description | pyrepr }}

    @classmethod
    async def from_request_parts(cls, parts, state):
        return cls.default()
"""
)

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef


def render_companion(
    name: str,
    target: str,
    summary: str | None,
    description: str | None,
    *,
    runtime: str = RUNTIME_ALIAS,
) -> str:
    """Render the companion class declaration for one function."""
    return _COMPANION_TEMPLATE.render(
        name=name,
        target=target,
        docstring=f"Companion type for ``{target}``.",
        summary=summary,
        description=description,
        runtime=runtime,
    )


class OpDocTransformer(ast.NodeTransformer):
    """Replace each ``@opdoc`` function with its companion and rewritten form."""

    def __init__(self, config: OpDocConfig, taken: set[str], runtime: str) -> None:
        self.config = config
        self.taken = taken
        self.runtime = runtime
        self.expanded: list[OperationDoc] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> ast.AST:
        if _marker_index(node.decorator_list, node.name) is not None:
            raise ParseError(node.name, "@opdoc can only be applied to a def or async def function")
        self.generic_visit(node)
        return node

    def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST | list[ast.AST]:
        return self._expand(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.AST | list[ast.AST]:
        return self._expand(node)

    def _expand(self, node: FunctionNode) -> ast.AST | list[ast.AST]:
        self.generic_visit(node)
        index = _marker_index(node.decorator_list, node.name)
        if index is None:
            return node

        if COMPANION_PARAM in _argument_names(node.args):
            logger.warning("Parameter '_' already present on {target}", target=node.name)
            raise TransformError(node.name, f"a parameter named {COMPANION_PARAM!r} already exists")

        fragments = fragments_from_node(node)
        summary, description = split_doc(fragments)
        name = self._allocate(companion_name(node.name, self.config.suffix))

        class_node = ast.parse(
            render_companion(
                name,
                node.name,
                doc_value(summary, omit_empty=self.config.omit_empty),
                doc_value(description, omit_empty=self.config.omit_empty),
                runtime=self.runtime,
            )
        ).body[0]
        ast.copy_location(class_node, node)

        del node.decorator_list[index]
        injected = ast.arg(
            arg=COMPANION_PARAM,
            annotation=ast.Call(
                func=ast.Attribute(
                    value=ast.Name(id=self.runtime, ctx=ast.Load()),
                    attr="companion_param",
                    ctx=ast.Load(),
                ),
                args=[ast.Name(id=name, ctx=ast.Load())],
                keywords=[],
            ),
        )
        if node.args.posonlyargs:
            node.args.posonlyargs.insert(0, injected)
        else:
            node.args.args.insert(0, injected)

        logger.debug("Expanded {target} with companion {companion}", target=node.name, companion=name)
        self.expanded.append(
            OperationDoc(
                name=node.name,
                summary=summary,
                description=description,
                fragments=fragments,
            )
        )
        return [class_node, node]

    def _allocate(self, base: str) -> str:
        name = unique_name(base, self.taken)
        self.taken.add(name)
        return name


def transform_source(
    source: str,
    *,
    filename: str = "<unknown>",
    config: OpDocConfig | None = None,
) -> str:
    """Expand every ``@opdoc`` function in ``source``.

    Source without marked functions is returned re-rendered but otherwise
    unchanged.

    Raises
    ------
    ParseError
        If ``source`` is not valid Python or a marker is misused
    TransformError
        If a marked function already has a parameter named ``_``
    """
    tree = _parse(source, filename)
    config = config or load_config()

    taken = collect_names(tree)
    runtime = unique_name(RUNTIME_ALIAS, taken)
    taken.add(runtime)

    transformer = OpDocTransformer(config, taken, runtime)
    tree = transformer.visit(tree)

    if transformer.expanded:
        _insert_runtime_import(tree, runtime)
    logger.debug(
        "Expanded {count} declaration(s) in {filename}",
        count=len(transformer.expanded),
        filename=filename,
    )
    return ast.unparse(ast.fix_missing_locations(tree)) + "\n"


def find_marked(source: str, *, filename: str = "<unknown>") -> list[OperationDoc]:
    """List the documentation of every ``@opdoc`` function without rewriting."""
    tree = _parse(source, filename)
    docs = []
    for node in ast.walk(tree):
        if not isinstance(node, FunctionNode):
            continue
        if _marker_index(node.decorator_list, node.name) is None:
            continue
        fragments = fragments_from_node(node)
        summary, description = split_doc(fragments)
        docs.append(
            OperationDoc(
                name=node.name,
                summary=summary,
                description=description,
                fragments=fragments,
            )
        )
    return docs


def collect_names(tree: ast.AST) -> set[str]:
    """Every identifier bound or referenced anywhere in ``tree``."""
    names: set[str] = set()
    for node in ast.walk(tree):
        match node:
            case ast.Name(id=name):
                names.add(name)
            case ast.FunctionDef(name=name) | ast.AsyncFunctionDef(name=name) | ast.ClassDef(name=name):
                names.add(name)
            case ast.arg(arg=name):
                names.add(name)
            case ast.alias(name=name, asname=asname):
                names.add(asname or name.split(".")[0])
            case ast.Global(names=bound) | ast.Nonlocal(names=bound):
                names.update(bound)
            case ast.ExceptHandler(name=str() as name):
                names.add(name)
    return names


def unique_name(base: str, taken: Iterable[str]) -> str:
    """``base``, or ``base`` plus the smallest counter (from 2) not in ``taken``."""
    taken = set(taken)
    if base not in taken:
        return base
    counter = 2
    while f"{base}{counter}" in taken:
        counter += 1
    return f"{base}{counter}"


def _parse(source: str, filename: str) -> ast.Module:
    try:
        return ast.parse(source, filename=filename)
    except SyntaxError as e:
        logger.warning("Could not parse {filename}: {error}", filename=filename, error=e)
        raise ParseError(filename, f"invalid Python source: {e.msg} (line {e.lineno})") from e


def _is_marker(expr: ast.expr) -> bool:
    match expr:
        case ast.Name(id=name) | ast.Attribute(attr=name):
            return name == MARKER
    return False


def _marker_index(decorators: list[ast.expr], subject: str) -> int | None:
    for index, decorator in enumerate(decorators):
        if isinstance(decorator, ast.Call) and _is_marker(decorator.func):
            raise ParseError(subject, "@opdoc takes no arguments")
        if _is_marker(decorator):
            return index
    return None


def _argument_names(args: ast.arguments) -> set[str]:
    names = {a.arg for a in (*args.posonlyargs, *args.args, *args.kwonlyargs)}
    if args.vararg:
        names.add(args.vararg.arg)
    if args.kwarg:
        names.add(args.kwarg.arg)
    return names


def _insert_runtime_import(tree: ast.Module, alias: str) -> None:
    position = 0
    body = tree.body
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant):
        if isinstance(body[0].value.value, str):
            position = 1
    while (
        position < len(body)
        and isinstance(body[position], ast.ImportFrom)
        and body[position].module == "__future__"
    ):
        position += 1
    body.insert(position, ast.Import(names=[ast.alias(name=RUNTIME_MODULE, asname=alias)]))


__all__ = [
    "OpDocTransformer",
    "collect_names",
    "find_marked",
    "render_companion",
    "transform_source",
    "unique_name",
]
