"""
Book model for the library circulation core.

A book is an inventory record: a catalog identity (the ISBN) plus two stock
counters. ``available_copies`` moves by exactly one on every loan and return
and must always stay within ``0..total_copies``. Descriptive metadata is
carried for callers but has no meaning to the circulation rules.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def normalize_isbn(value: str) -> str:
    """Strip hyphens and spaces so ISBNs compare and store consistently."""
    normalized = value.replace("-", "").replace(" ", "").upper()
    if len(normalized) not in (10, 13):
        raise ValueError("ISBN must have 10 or 13 characters")
    if not (normalized[:-1].isdigit() and (normalized[-1].isdigit() or normalized[-1] == "X")):
        raise ValueError("ISBN must contain only digits (ISBN-10 may end in X)")
    return normalized


class Book(BaseModel):
    """Represents a catalog title and its stock counters."""

    isbn: str = Field(
        ...,
        description="International Standard Book Number, stored without hyphens",
        examples=["9780134685479", "978-0-13-468547-9"],
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=500,
        examples=["The Great Gatsby", "Cien años de soledad"],
    )

    author: str = Field(
        ...,
        description="Author name as printed on the title page",
        min_length=1,
        max_length=200,
    )

    publisher: str | None = Field(
        None,
        description="Publishing house",
        max_length=200,
    )

    publication_year: int | None = Field(
        None,
        description="Year the edition was published",
        ge=1450,
        le=datetime.now().year + 1,
    )

    total_copies: int = Field(
        ...,
        description="Total number of copies owned by the library",
        ge=1,
        examples=[1, 3, 10],
    )

    available_copies: int = Field(
        ...,
        description="Number of copies currently on the shelf",
        ge=0,
        examples=[0, 1, 5],
    )

    created_at: datetime | None = Field(
        None,
        description="Timestamp when the book was added to the catalog",
    )

    updated_at: datetime | None = Field(
        None,
        description="Timestamp when the book record was last updated",
    )

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str) -> str:
        return normalize_isbn(v)

    @field_validator("title", "author")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v

    @model_validator(mode="after")
    def validate_copies(self) -> "Book":
        """Ensure available copies doesn't exceed total copies."""
        if self.available_copies > self.total_copies:
            raise ValueError("Available copies cannot exceed total copies")
        return self

    @property
    def is_available(self) -> bool:
        """Check if the book has any available copies."""
        return self.available_copies > 0

    @property
    def checked_out_copies(self) -> int:
        """Number of copies currently out on loan."""
        return self.total_copies - self.available_copies

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "isbn": "9780134685479",
                "title": "The Great Gatsby",
                "author": "F. Scott Fitzgerald",
                "publisher": "Scribner",
                "publication_year": 1925,
                "total_copies": 3,
                "available_copies": 2,
            }
        },
    )
