"""Data models for parsed operation documentation."""

from pydantic import BaseModel, ConfigDict, Field


class CommentFragment(BaseModel):
    """One line of a declaration's doc comment, in source order.

    Attributes
    ----------
    text : str
        Raw text of the line
    """

    model_config = ConfigDict(frozen=True)

    text: str


class OperationDoc(BaseModel):
    """Documentation parsed from one declaration.

    Attributes
    ----------
    name : str
        Name of the documented function
    summary : str
        Leading paragraph, lines concatenated without a separator
    description : str
        Everything after the first blank line
    fragments : list[CommentFragment]
        The doc comment lines the split was computed from
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    summary: str = ""
    description: str = ""
    fragments: list[CommentFragment] = Field(default_factory=list)
