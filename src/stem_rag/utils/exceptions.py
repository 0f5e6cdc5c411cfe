# src/stem_rag/utils/exceptions.py
"""Custom exceptions for the STEM RAG core"""


class RAGException(Exception):
    """Base exception for the RAG core"""
    pass


class EmbeddingError(RAGException):
    """Raised when embedding generation fails"""
    pass


class RetrievalError(RAGException):
    """Raised when document retrieval fails"""
    pass


class IngestionError(RAGException):
    """Raised when document ingestion fails"""
    pass


class ValidationError(RAGException):
    """Raised when data crossing a service boundary is malformed"""
    pass
