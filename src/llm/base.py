"""The model capability consumed by the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CompletionOptions:
    system: str | None = None
    temperature: float = 0.1


@runtime_checkable
class ModelCapability(Protocol):
    """A text-completion backend.

    Implementations raise :class:`src.errors.ModelError` subclasses on
    transport failures and timeouts. A call must be safe to retry: it has no
    side effects visible to the caller.
    """

    name: str

    def complete(self, prompt: str, *, system: str | None = None, temperature: float = 0.1) -> str: ...
