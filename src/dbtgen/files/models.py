from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Sheet(BaseModel):
    """One sheet (or the single table of a CSV) from a parsed upload."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    headers: List[str] = Field(default_factory=list)
    sample_rows: List[List[Any]] = Field(default_factory=list, alias="sampleRows")


class ParsedFile(BaseModel):
    """Result of the file parser: consumed to build prompts, never mutated."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    type: Optional[str] = None
    sheets: List[Sheet] = Field(default_factory=list)
