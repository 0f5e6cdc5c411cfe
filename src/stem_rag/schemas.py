# src/stem_rag/schemas.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import List


class RetrievedChunk(BaseModel):
    """
    A document chunk returned by similarity search.

    Rows coming out of the document store are validated into this model before
    they reach the query cache. The raw row names of the vector query
    (``id``, ``title``) are accepted as aliases.
    """
    chunk_id: int = Field(..., validation_alias=AliasChoices("chunk_id", "id"))
    document_id: int
    document_title: str = Field(..., validation_alias=AliasChoices("document_title", "title"))
    content: str
    similarity: float = Field(
        ...,
        validation_alias=AliasChoices("similarity", "similarity_score"),
        description="Similarity against the query that produced this result"
    )

    model_config = ConfigDict(frozen=True)


class EmbeddedChunk(BaseModel):
    """A chunk of text and its embedding"""
    content: str
    embedding: List[float]

    model_config = ConfigDict(frozen=True)
