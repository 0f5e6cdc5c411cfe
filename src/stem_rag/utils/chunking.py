# src/stem_rag/utils/chunking.py
from typing import List, Dict, Any, Callable
import re
from dataclasses import dataclass

# A sentence ends at ., ? or ! followed by whitespace; line breaks also end one.
_SENTENCE_BOUNDARY = re.compile(r'(?<=[.?!])\s+|\n+')


@dataclass
class TextChunk:
    content: str
    chunk_index: int
    metadata: Dict[str, Any] = None


class TextChunker:
    """Sentence-boundary chunking with a soft size cap"""

    def __init__(
        self,
        chunk_size: int = 512,
        length_function: Callable[[str], int] = len
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.length_function = length_function

    def split_text(self, text: str) -> List[TextChunk]:
        """
        Split text into chunks of whole sentences.

        Sentences are accumulated until adding the next one would exceed
        chunk_size. A sentence longer than chunk_size becomes a chunk of its
        own and is never cut.
        """
        chunks = []
        current = ""

        for sentence in self._split_sentences(text):
            if current and self.length_function(current) + self.length_function(sentence) > self.chunk_size:
                chunks.append(TextChunk(content=current, chunk_index=len(chunks)))
                current = sentence
            else:
                current = f"{current} {sentence}" if current else sentence

        if current:
            chunks.append(TextChunk(content=current, chunk_index=len(chunks)))

        return chunks

    def split_contents(self, text: str) -> List[str]:
        """Chunk contents only, for callers that don't need the index"""
        return [chunk.content for chunk in self.split_text(text)]

    def _split_sentences(self, text: str) -> List[str]:
        """Split text into non-empty, stripped sentences"""
        if not text:
            return []
        sentences = _SENTENCE_BOUNDARY.split(text)
        return [s.strip() for s in sentences if s.strip()]
