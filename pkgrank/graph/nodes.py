"""
pkgrank/graph/nodes.py — Node interning table.

The first request for a name allocates the next sequential id (starting at
0); every later request for the same name returns that id. The table only
grows for the lifetime of one graph build.
"""

from typing import Iterator, Optional


class NodeTable:
    """Bijective name ↔ id mapping with optional repository ownership."""

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._names: list[str] = []
        self._owners: dict[int, str] = {}

    def intern(self, name: str) -> int:
        node_id = self._ids.get(name)
        if node_id is None:
            node_id = len(self._names)
            self._ids[name] = node_id
            self._names.append(name)
        return node_id

    def id_of(self, name: str) -> Optional[int]:
        return self._ids.get(name)

    def name(self, node_id: int) -> str:
        return self._names[node_id]

    def set_owner(self, node_id: int, repo: str) -> None:
        """Link a node to its owning repository (first owner wins)."""
        self._owners.setdefault(node_id, repo)

    def owner(self, node_id: int) -> str:
        return self._owners.get(node_id, "")

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[tuple[int, str]]:
        return iter(enumerate(self._names))
