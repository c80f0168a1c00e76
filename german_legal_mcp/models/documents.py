"""Document models.

Shapes produced by the fetch engine and the normalizer and serialized
into tool results.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FetchResult(BaseModel):
    """One rendered page, captured after all redirects"""

    model_config = ConfigDict(frozen=True)

    final_url: str
    raw_content: str


class NormalizedDocument(BaseModel):
    title: str
    body: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.body.strip()

    def to_markdown(self) -> str:
        return f"# {self.title}\n\n{self.body}"


class SearchHit(BaseModel):
    title: str
    type: str = "Unknown"
    vpath: str = Field(..., min_length=1)
    link: str


class Siblings(BaseModel):
    previous: Optional[str] = None
    next: Optional[str] = None


class ContextInfo(BaseModel):
    breadcrumbs: list[str] = Field(default_factory=list)
    siblings: Siblings = Field(default_factory=Siblings)


class Reference(BaseModel):
    text: str
    vpath: str = Field(..., min_length=1)


class CitationResolution(BaseModel):
    citation: str
    vpath: str
    canonical_url: str
