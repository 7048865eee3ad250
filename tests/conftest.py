import threading
import time
from pathlib import Path

import pytest

from vault_search.errors import EmbeddingUnavailable
from vault_search.storage import DuckDBStorage


class KeywordEmbedder:
    """Deterministic embedder: one axis per keyword plus a constant bias axis."""

    def __init__(
        self,
        keywords: tuple[str, ...] = ("cat", "dog"),
        *,
        signature: str | None = None,
        fail_on: str | None = None,
        delay: float = 0.0,
    ) -> None:
        self.keywords = keywords
        self.fail_on = fail_on
        self.delay = delay
        self.calls: list[str] = []
        self._calls_lock = threading.Lock()
        if signature is not None:
            self.signature = signature

    def embed(self, text: str) -> list[float]:
        with self._calls_lock:
            self.calls.append(text)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingUnavailable(f"provider refused {text!r}")
        lowered = text.lower()
        return [1.0 if keyword in lowered else 0.0 for keyword in self.keywords] + [0.1]


class FixedEmbedder:
    """Return the same vector for every text."""

    def __init__(self, vector: list[float]) -> None:
        self.vector = vector
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self.vector)


class FailingEmbedder:
    def embed(self, text: str) -> list[float]:
        raise EmbeddingUnavailable("provider is down")


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def storage(tmp_path: Path):
    store = DuckDBStorage(str(tmp_path / "index.duckdb"))
    yield store
    store.close()
