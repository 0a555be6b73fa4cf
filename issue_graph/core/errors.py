from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GraphError(Exception):
    """Base error envelope. Prefer returning/printing these rather than raising raw exceptions."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<graph>"
        return f"{loc}: {self.code}: {self.message}"


class GraphLoadError(GraphError):
    pass


class GraphValidationError(GraphError):
    pass


class GraphMutationError(GraphError):
    pass


E_SELF_REFERENCE = "E_SELF_REFERENCE"
E_NOT_FOUND = "E_NOT_FOUND"
E_CYCLE_DETECTED = "E_CYCLE_DETECTED"
E_DUPLICATE_ID = "E_DUPLICATE_ID"


def sort_errors(errors: list[GraphError]) -> list[GraphError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
