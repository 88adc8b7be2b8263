from __future__ import annotations

import time
import uuid


def generate_id() -> str:
    ts = format(int(time.time() * 1000), "x")
    suffix = uuid.uuid4().hex[:9]
    return f"{ts}-{suffix}"


class IdFactory:
    """Hands out identifiers that are unique within one conversion pass."""

    def __init__(self, generator=generate_id) -> None:
        self._generator = generator
        self._issued: set[str] = set()

    def new(self) -> str:
        candidate = self._generator()
        while candidate in self._issued:
            candidate = self._generator()
        self._issued.add(candidate)
        return candidate

    def claim(self, candidate: object) -> str:
        """Keep ``candidate`` if it is a usable, unseen id; otherwise mint a fresh one."""
        if isinstance(candidate, str) and candidate and candidate not in self._issued:
            self._issued.add(candidate)
            return candidate
        return self.new()

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._issued


__all__ = ["IdFactory", "generate_id"]
