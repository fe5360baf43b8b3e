"""Text embedders for the in-memory knowledge store."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections import Counter
from hashlib import blake2b
from math import log, sqrt

_WORD_PATTERN = re.compile(r"\w+", flags=re.UNICODE)
BIGRAM_WEIGHT = 0.5


class Embedder(ABC):
    """Maps text to fixed-length vectors compared with cosine similarity."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed one query."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]


class HashingEmbedder(Embedder):
    """Feature-hashed term vectors; no model calls.

    Features are lower-cased word unigrams plus adjacent-word bigrams (weighted
    by `BIGRAM_WEIGHT`), so "capital of France" scores above a document that
    merely mentions "capital" and "France" apart. Each feature contributes
    `1 + log(count)` (sublinear term frequency) to a signed bucket chosen by
    blake2b; the result is L2-normalized. Empty text embeds to the zero vector.
    """

    def __init__(self, dimension: int = 256, *, bigrams: bool = True) -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self.dimension = dimension
        self.bigrams = bigrams

    def embed_query(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for feature, weight in self._features(text).items():
            bucket, sign = self._bucket(feature)
            vector[bucket] += sign * weight
        return _normalize(vector)

    def _features(self, text: str) -> dict[str, float]:
        words = _WORD_PATTERN.findall(text.lower())
        weights = {word: 1.0 + log(count) for word, count in Counter(words).items()}
        if self.bigrams:
            pairs = Counter(f"{a} {b}" for a, b in zip(words, words[1:]))
            for pair, count in pairs.items():
                weights[pair] = BIGRAM_WEIGHT * (1.0 + log(count))
        return weights

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = blake2b(feature.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest[:4], "little") % self.dimension, (-1.0 if digest[4] & 1 else 1.0)


def _normalize(vector: list[float]) -> list[float]:
    norm = sqrt(sum(value * value for value in vector))
    if norm == 0:
        return vector
    return [value / norm for value in vector]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
