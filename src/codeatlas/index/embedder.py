from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from ..errors import EmbeddingServiceError


class EmbeddingService(Protocol):
    model_name: str

    def initialize(self) -> None: ...

    def embed(self, text: str) -> list[float]: ...


@dataclass(frozen=True)
class EmbeddingResult:
    vectors: np.ndarray  # shape [n, d], float32, L2-normalized


class FastEmbedService:
    """fastembed-backed embedding service; the model loads on initialize()."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._model = None

    def initialize(self) -> None:
        if self._model is not None:
            return
        try:
            # Import here so the pipeline still runs without embedding deps.
            from fastembed import TextEmbedding  # type: ignore
        except ImportError as e:
            raise EmbeddingServiceError("fastembed is not installed. Install: `pip install -e '.[embed]'`") from e
        try:
            self._model = TextEmbedding(model_name=self.model_name)
        except Exception as e:
            raise EmbeddingServiceError(f"Failed to load embedding model {self.model_name}: {e}") from e

    def embed_texts(self, texts: list[str]) -> EmbeddingResult:
        if not texts:
            return EmbeddingResult(vectors=np.zeros((0, 0), dtype=np.float32))
        self.initialize()
        vectors = np.array(list(self._model.embed(texts)), dtype=np.float32)
        return EmbeddingResult(vectors=l2_normalize(vectors))

    def embed(self, text: str) -> list[float]:
        return self.embed_texts([text]).vectors[0].tolist()


def l2_normalize(x: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    norm = np.linalg.norm(x, axis=1, keepdims=True)
    return x / np.maximum(norm, eps)
