"""Tests for opdoc.source - source-to-source expansion."""

from __future__ import annotations

import ast
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from opdoc.config import OpDocConfig
from opdoc.exceptions import ParseError, TransformError
from opdoc.routing import document_routes
from opdoc.source import collect_names, find_marked, render_companion, transform_source, unique_name

ROUTES = '''\
"""Item routes."""

from __future__ import annotations

from fastapi import APIRouter

from opdoc import opdoc

router = APIRouter()


@router.get("/items/{item_id}")
@opdoc
async def read_item(item_id: int) -> dict:
    """Read one item.

    Looks the item up by its numeric id.
    """
    return {"item_id": item_id}


@router.get("/health")
async def health() -> dict:
    """Health check."""
    return {"status": "ok"}
'''


def function(tree: ast.Module, name: str) -> ast.FunctionDef | ast.AsyncFunctionDef:
    return next(
        node
        for node in ast.walk(tree)
        if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef) and node.name == name
    )


def exec_source(source: str) -> dict[str, Any]:
    namespace: dict[str, Any] = {"__name__": "expanded_routes"}
    exec(compile(source, "<expanded>", "exec"), namespace)
    return namespace


class TestTransformSource:
    """Tests for the emitted declarations."""

    def test_emits_companion_before_function(self, config: OpDocConfig) -> None:
        """The companion class precedes the rewritten function."""
        output = transform_source(ROUTES, config=config)
        assert "class read_item_OpDoc(_opdoc.Companion):" in output
        assert output.index("class read_item_OpDoc") < output.index("async def read_item(")

    def test_marker_removed_and_parameter_inserted(self, config: OpDocConfig) -> None:
        """The rewritten function drops @opdoc and gains '_' at index 0."""
        tree = ast.parse(transform_source(ROUTES, config=config))
        node = function(tree, "read_item")

        assert [ast.unparse(d) for d in node.decorator_list] == ["router.get('/items/{item_id}')"]
        assert [a.arg for a in node.args.args] == ["_", "item_id"]
        assert ast.unparse(node.args.args[0].annotation) == "_opdoc.companion_param(read_item_OpDoc)"
        assert ast.unparse(node.returns) == "dict"

    def test_unmarked_functions_untouched(self, config: OpDocConfig) -> None:
        """Functions without the marker keep their parameters."""
        tree = ast.parse(transform_source(ROUTES, config=config))
        assert function(tree, "health").args.args == []

    def test_runtime_import_after_future_imports(self, config: OpDocConfig) -> None:
        """The runtime import follows the docstring and __future__ imports."""
        tree = ast.parse(transform_source(ROUTES, config=config))
        assert isinstance(tree.body[0], ast.Expr)
        assert ast.unparse(tree.body[1]) == "from __future__ import annotations"
        assert ast.unparse(tree.body[2]) == "import opdoc as _opdoc"

    def test_companion_text(self, config: OpDocConfig) -> None:
        """The companion carries the split docstring."""
        tree = ast.parse(transform_source(ROUTES, config=config))
        companion = next(
            n for n in tree.body if isinstance(n, ast.ClassDef) and n.name == "read_item_OpDoc"
        )
        method = next(
            n for n in companion.body if isinstance(n, ast.FunctionDef) and n.name == "operation_input"
        )
        assert ast.unparse(method.body[0]) == "operation.summary = 'Read one item.'"
        assert (
            ast.unparse(method.body[1])
            == "operation.description = 'Looks the item up by its numeric id.'"
        )

    def test_no_markers(self, config: OpDocConfig) -> None:
        """Source without markers gets no runtime import."""
        output = transform_source("def f(a):\n    return a\n", config=config)
        assert "_opdoc" not in output
        assert output == "def f(a):\n    return a\n"

    def test_deterministic(self, config: OpDocConfig) -> None:
        """Expanding the same source twice gives the same text."""
        assert transform_source(ROUTES, config=config) == transform_source(ROUTES, config=config)

    def test_positional_only_parameters(self, config: OpDocConfig) -> None:
        """The companion is inserted ahead of positional-only parameters."""
        source = "@opdoc\ndef f(a, /, b):\n    pass\n"
        node = function(ast.parse(transform_source(source, config=config)), "f")
        assert [a.arg for a in node.args.posonlyargs] == ["_", "a"]
        assert [a.arg for a in node.args.args] == ["b"]

    def test_attribute_marker(self, config: OpDocConfig) -> None:
        """``@opdoc.opdoc`` is recognised as the marker."""
        source = "import opdoc\n\n@opdoc.opdoc\ndef f():\n    '''Doc.'''\n"
        output = transform_source(source, config=config)
        assert "class f_OpDoc(_opdoc.Companion):" in output

    def test_method_companion_stays_in_class_body(self, config: OpDocConfig) -> None:
        """Marked methods get their companion in the same class body."""
        source = "class Handlers:\n    @opdoc\n    def get(self):\n        '''Get.'''\n"
        tree = ast.parse(transform_source(source, config=config))
        handlers = tree.body[1]
        assert isinstance(handlers, ast.ClassDef)
        assert [type(n).__name__ for n in handlers.body] == ["ClassDef", "FunctionDef"]

    def test_omit_empty(self) -> None:
        """omit_empty renders empty text as None."""
        source = "@opdoc\ndef f():\n    pass\n"
        output = transform_source(source, config=OpDocConfig(omit_empty=True))
        assert "operation.summary = None" in output
        assert "operation.description = None" in output

    def test_custom_suffix(self) -> None:
        """The configured suffix names the companion."""
        source = "@opdoc\ndef f():\n    pass\n"
        output = transform_source(source, config=OpDocConfig(suffix="_Docs"))
        assert "class f_Docs(_opdoc.Companion):" in output


class TestHygiene:
    """Synthesized names avoid identifiers already in the module."""

    def test_companion_name_collision(self, config: OpDocConfig) -> None:
        """An existing name gets a counter appended."""
        source = "read_item_OpDoc = 1\n\n@opdoc\ndef read_item():\n    pass\n"
        output = transform_source(source, config=config)
        assert "class read_item_OpDoc2(_opdoc.Companion):" in output
        assert "read_item_OpDoc = 1" in output

    def test_runtime_alias_collision(self, config: OpDocConfig) -> None:
        """A user-defined _opdoc pushes the runtime alias aside."""
        source = "_opdoc = 'mine'\n\n@opdoc\ndef f():\n    pass\n"
        output = transform_source(source, config=config)
        assert "import opdoc as _opdoc2" in output
        assert "class f_OpDoc(_opdoc2.Companion):" in output

    def test_same_name_twice(self, config: OpDocConfig) -> None:
        """Two marked functions with one name get distinct companions."""
        source = (
            "class A:\n    @opdoc\n    def get(self):\n        pass\n"
            "class B:\n    @opdoc\n    def get(self):\n        pass\n"
        )
        output = transform_source(source, config=config)
        assert "class get_OpDoc(_opdoc.Companion):" in output
        assert "class get_OpDoc2(_opdoc.Companion):" in output

    def test_unique_name(self) -> None:
        """unique_name picks the smallest free counter."""
        assert unique_name("x", set()) == "x"
        assert unique_name("x", {"x"}) == "x2"
        assert unique_name("x", {"x", "x2", "x3"}) == "x4"

    def test_collect_names(self) -> None:
        """Bound and referenced identifiers are all collected."""
        tree = ast.parse(
            "import os.path\nfrom a import b as c\n"
            "def f(p, *q, **r):\n    global g\n    try:\n        pass\n"
            "    except E as err:\n        pass\nclass K: pass\nv = w\n"
        )
        names = collect_names(tree)
        assert {"os", "c", "f", "p", "q", "r", "g", "E", "err", "K", "v", "w"} <= names


class TestFailures:
    """Invalid input is rejected and nothing is emitted."""

    def test_syntax_error(self, config: OpDocConfig) -> None:
        """Unparseable source raises ParseError."""
        with pytest.raises(ParseError) as exc_info:
            transform_source("def broken(:\n", filename="broken.py", config=config)
        assert exc_info.value.subject == "broken.py"

    def test_marker_on_class(self, config: OpDocConfig) -> None:
        """The marker only applies to functions."""
        with pytest.raises(ParseError):
            transform_source("@opdoc\nclass C:\n    pass\n", config=config)

    def test_marker_with_arguments(self, config: OpDocConfig) -> None:
        """The marker takes no arguments."""
        with pytest.raises(ParseError):
            transform_source("@opdoc('x')\ndef f():\n    pass\n", config=config)

    def test_existing_underscore_parameter(self, config: OpDocConfig) -> None:
        """'_' already in use makes insertion impossible."""
        with pytest.raises(TransformError):
            transform_source("@opdoc\ndef f(*, _):\n    pass\n", config=config)

    def test_failure_is_all_or_nothing(self, config: OpDocConfig) -> None:
        """One bad declaration fails the whole module."""
        source = "@opdoc\ndef good():\n    pass\n\n@opdoc\ndef bad(_):\n    pass\n"
        with pytest.raises(TransformError):
            transform_source(source, config=config)


class TestExpandedSourceRuns:
    """The expanded module executes and serves documented routes."""

    def test_serves_and_documents(self, config: OpDocConfig) -> None:
        """Expanded handlers work under FastAPI with their docstring metadata."""
        namespace = exec_source(transform_source(ROUTES, config=config))
        app = FastAPI()
        app.include_router(namespace["router"])
        assert document_routes(app) == 1

        with TestClient(app) as client:
            assert client.get("/items/5").json() == {"item_id": 5}
            operation = client.get("/openapi.json").json()["paths"]["/items/{item_id}"]["get"]
            assert operation["summary"] == "Read one item."
            assert operation["description"] == "Looks the item up by its numeric id."
            assert [p["name"] for p in operation["parameters"]] == ["item_id"]

    @pytest.mark.asyncio
    async def test_companion_behaviour(self, config: OpDocConfig) -> None:
        """The emitted companion is a singleton with an infallible extractor."""
        namespace = exec_source(transform_source(ROUTES, config=config))
        companion = namespace["read_item_OpDoc"]
        assert companion() is companion.default()
        assert await companion.from_request_parts(None, None) is companion()
        assert companion.summary == "Read one item."


class TestFindMarked:
    """Tests for find_marked."""

    def test_lists_marked_functions(self) -> None:
        """Only marked functions are reported."""
        docs = find_marked(ROUTES)
        assert [d.name for d in docs] == ["read_item"]
        assert docs[0].summary == "Read one item."
        assert docs[0].description == "Looks the item up by its numeric id."

    def test_render_companion(self) -> None:
        """The template renders valid Python."""
        source = render_companion("f_OpDoc", "f", "It's a summary", 'With "quotes"\nand lines')
        node = ast.parse(source).body[0]
        assert isinstance(node, ast.ClassDef)
        assert node.name == "f_OpDoc"
        assert ast.literal_eval(node.body[2].value) == "It's a summary"
        assert ast.literal_eval(node.body[3].value) == 'With "quotes"\nand lines'
