"""
Embedding and text-generation capabilities.

The core only depends on the narrow ``EmbeddingCapability`` protocol; the
Google GenAI provider below is the default adapter used by the CLI, and
``BoundedEmbedder`` caps the number of in-flight provider calls.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Protocol, runtime_checkable

from google.genai import Client as GenAIClient

from .errors import EmbeddingUnavailable


logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_GENERATION_MODEL = "gemini-2.5-flash"
_DEFAULT_MAX_CONCURRENCY = 4


@runtime_checkable
class EmbeddingCapability(Protocol):
    """Anything that turns text into a fixed-length vector."""

    def embed(self, text: str) -> list[float]:
        """Return the embedding for *text* or raise ``EmbeddingUnavailable``."""


class GenerationCapability(Protocol):
    """Anything that completes a prompt. Not used by indexing or search."""

    def generate_text(self, prompt: str) -> str:
        """Return generated text for *prompt*."""


def capability_signature(capability: Any) -> str | None:
    """Return the configuration signature of *capability*, if it exposes one."""
    signature = getattr(capability, "signature", None)
    if signature is None:
        return None
    return str(signature)


class GenAIProvider:
    """Generate embeddings and text via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        generation_model: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("VAULT_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("VAULT_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.generation_model = generation_model or os.getenv(
            "VAULT_SEARCH_GENERATION_MODEL", _DEFAULT_GENERATION_MODEL
        )

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    @property
    def signature(self) -> str:
        """Identifies the embedding space; vectors from different signatures never mix."""
        return f"genai:{self.model}:{self.dim}"

    def embed(self, text: str) -> list[float]:
        """Embed a single text. Provider failures surface as ``EmbeddingUnavailable``."""
        try:
            result = self._client.models.embed_content(
                model=self.model,
                contents=[text],
                config={
                    "task_type": "SEMANTIC_SIMILARITY",
                    "output_dimensionality": self.dim,
                },
            )
        except Exception as exc:
            raise EmbeddingUnavailable(
                f"Embedding request to {self.model} failed: {exc}"
            ) from exc

        if not result.embeddings:
            raise EmbeddingUnavailable(f"Embedding model {self.model} returned no vectors")
        return [float(value) for value in result.embeddings[0].values]

    def generate_text(self, prompt: str) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.generation_model,
                contents=prompt,
            )
        except Exception as exc:
            raise EmbeddingUnavailable(
                f"Generation request to {self.generation_model} failed: {exc}"
            ) from exc
        return response.text or ""


class BoundedEmbedder:
    """
    Wrap an embedding capability with a concurrency cap.

    Calls beyond ``max_concurrency`` block until a slot frees up. Failures
    are not retried.
    """

    def __init__(
        self,
        capability: EmbeddingCapability,
        max_concurrency: int = _DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self.capability = capability
        self.max_concurrency = max_concurrency
        self._slots = threading.BoundedSemaphore(max_concurrency)

    @property
    def signature(self) -> str | None:
        return capability_signature(self.capability)

    def embed(self, text: str) -> list[float]:
        with self._slots:
            try:
                return self.capability.embed(text)
            except EmbeddingUnavailable:
                raise
            except Exception as exc:
                logger.debug("Embedding capability raised %r", exc)
                raise EmbeddingUnavailable(f"Embedding capability failed: {exc}") from exc
