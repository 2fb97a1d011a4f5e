"""SQLModel definitions for the vector store."""

from sqlalchemy import Column, LargeBinary
from sqlmodel import Field, SQLModel


class IndexedDocument(SQLModel, table=True):
    """One embedded file. At most one row per path."""

    __tablename__ = "vectors"

    id: int | None = Field(default=None, primary_key=True)
    file_path: str = Field(unique=True, index=True)
    content_preview: str = ""
    embedding: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    dimension: int
    model: str
    indexed_at: float = Field(index=True)  # epoch seconds
    file_mtime: float = 0.0  # epoch seconds, compared with a 1s tolerance
