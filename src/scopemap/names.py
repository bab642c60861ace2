"""Name table shared by both trees within one encode/decode call."""

from __future__ import annotations

from scopemap.errors import InvalidNameReferenceError


class NameTable:
    """Append-only interning view over a source map's ``names`` list.

    The wrapped list is mutated in place: callers pass the ``names`` array of
    the map they are writing, possibly pre-populated. An index is the
    position of a string's first insertion and never changes.
    """

    def __init__(self, names: list[str] | None = None) -> None:
        self._names: list[str] = names if names is not None else []
        self._index: dict[str, int] = {}
        for idx, name in enumerate(self._names):
            self._index.setdefault(name, idx)

    @property
    def names(self) -> list[str]:
        return self._names

    def __len__(self) -> int:
        return len(self._names)

    def index_of(self, name: str) -> int:
        """Index of ``name``, appending it on first use."""
        idx = self._index.get(name)
        if idx is None:
            idx = len(self._names)
            self._names.append(name)
            self._index[name] = idx
        return idx

    def optional_index(self, name: str | None) -> int:
        """Like ``index_of`` but maps ``None`` to -1."""
        return -1 if name is None else self.index_of(name)

    def resolve(self, idx: int) -> str:
        if idx < 0 or idx >= len(self._names):
            raise InvalidNameReferenceError(
                f"Name index {idx} is outside the name table (size {len(self._names)})",
            )
        return self._names[idx]

    def resolve_optional(self, idx: int) -> str | None:
        """Negative indices mean "no name"."""
        if idx < 0:
            return None
        return self.resolve(idx)
