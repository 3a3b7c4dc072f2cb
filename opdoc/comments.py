"""Doc comment extraction and the summary/description split.

A docstring is read as a sequence of comment fragments, one per line. The
split policy is:

- the summary is the run of non-blank lines at the top, concatenated with
  no separator and trimmed;
- the description is everything from the first blank line onwards, joined
  with newlines and trimmed.

>>> split_doc(["This is a summary", "", "This is a longer description."])
('This is a summary', 'This is a longer description.')
>>> split_doc(["", "Body text after blank."])
('', 'Body text after blank.')
"""

from __future__ import annotations

import ast
import inspect
from typing import TYPE_CHECKING, Any

from opdoc.models import CommentFragment, OperationDoc

if TYPE_CHECKING:
    from collections.abc import Iterable


def fragments_from_docstring(doc: object) -> list[CommentFragment]:
    """Turn a docstring value into comment fragments.

    Anything that is not a ``str`` (including ``None``) yields no fragments.
    """
    if not isinstance(doc, str):
        return []
    return [CommentFragment(text=line) for line in _lines(inspect.cleandoc(doc))]


def extract_fragments(obj: Any) -> list[CommentFragment]:
    """Read the comment fragments attached to a function or class."""
    return fragments_from_docstring(getattr(obj, "__doc__", None))


def fragments_from_node(node: ast.AST) -> list[CommentFragment]:
    """Read the comment fragments of a function or class node.

    Only a leading string-constant statement counts as a docstring; a
    leading bytes or numeric constant is ignored.
    """
    body = getattr(node, "body", None)
    if not body or not isinstance(body, list):
        return []
    first = body[0]
    if (
        isinstance(first, ast.Expr)
        and isinstance(first.value, ast.Constant)
        and isinstance(first.value.value, str)
    ):
        return fragments_from_docstring(first.value.value)
    return []


def split_doc(fragments: Iterable[CommentFragment | str]) -> tuple[str, str]:
    """Split comment fragments into ``(summary, description)``.

    Never fails: no fragments produce two empty strings.
    """
    texts = [f.text if isinstance(f, CommentFragment) else f for f in fragments]
    lines = _lines("\n".join(texts))

    first_blank = next(
        (i for i, line in enumerate(lines) if not line.strip()),
        len(lines),
    )

    summary = "".join(lines[:first_blank]).strip()
    description = "\n".join(lines[first_blank:]).strip()
    return summary, description


def parse_doc(obj: Any, name: str | None = None) -> OperationDoc:
    """Extract and split the docstring of ``obj`` in one step."""
    fragments = extract_fragments(obj)
    summary, description = split_doc(fragments)
    return OperationDoc(
        name=name if name is not None else getattr(obj, "__name__", ""),
        summary=summary,
        description=description,
        fragments=fragments,
    )


def _lines(text: str) -> list[str]:
    # Only "\n" terminates a line; a trailing terminator adds no empty line.
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]
