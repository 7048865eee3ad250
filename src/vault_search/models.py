from datetime import date
from typing import Literal, TypeAlias

from pydantic import BaseModel, Field, field_validator, model_validator

SearchStrategy: TypeAlias = Literal["semantic", "hybrid", "exact"]


class DateRange(BaseModel):
    """Inclusive date bounds; either side may be left open"""

    start: date | None = Field(default=None, description="Earliest accepted date")
    end: date | None = Field(default=None, description="Latest accepted date")

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("date range start must not be after its end")
        return self


class SearchFilters(BaseModel):
    """Metadata predicates applied to every candidate document"""

    categories: set[str] = Field(
        default_factory=set, description="Accepted values of the `category` field"
    )
    tags: set[str] = Field(
        default_factory=set,
        description="At least one of these must appear in the document tags",
    )
    date_range: DateRange | None = Field(
        default=None, description="Bounds on the document `date` field"
    )

    @field_validator("tags", mode="after")
    @classmethod
    def _normalize_tags(cls, tags: set[str]) -> set[str]:
        # Same form as parsed document tags: no surrounding space, no leading '#'.
        normalized = {tag.strip().lstrip("#").strip() for tag in tags}
        return {tag for tag in normalized if tag}

    def is_empty(self) -> bool:
        return not self.categories and not self.tags and self.date_range is None


class Query(BaseModel):
    """A search request against the indexed documents"""

    text: str = Field(description="Query text")
    limit: int = Field(default=5, gt=0, description="Maximum number of results")
    threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum cosine similarity for semantic matches",
    )
    strategy: SearchStrategy = Field(default="semantic", description="Ranking strategy")
    filters: SearchFilters = Field(default_factory=SearchFilters)
    include_excerpt: bool = Field(
        default=False, description="Attach the most relevant lines of each document"
    )
