"""Bounded breadth-first expansion over directed topic links."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

DEFAULT_DEPTH = 2
MAX_DEPTH = 5


class Link(Protocol):
    source_topic_id: str
    target_topic_id: str


L = TypeVar("L", bound=Link)


@dataclass
class DocGraph(Generic[L]):
    """Reachable node ids (sorted) and every traversed edge."""

    nodes: list[str] = field(default_factory=list)
    edges: list[L] = field(default_factory=list)


def clamp_depth(
    depth: int | None,
    *,
    default: int = DEFAULT_DEPTH,
    maximum: int = MAX_DEPTH,
) -> int:
    """Map a requested depth into ``[1, maximum]``; unset or <= 0 -> default."""
    if depth is None or depth <= 0:
        return min(default, maximum)
    return min(depth, maximum)


async def traverse(
    root_id: str,
    depth: int,
    fetch_links: Callable[[list[str]], Awaitable[Sequence[L]]],
) -> DocGraph[L]:
    """Expand *depth* layers outward from *root_id*.

    Every fetched link is kept as an edge, including links back into
    already-visited nodes; only unvisited targets join the next layer.
    Stops early when a layer yields no links.
    """
    visited: set[str] = {root_id}
    layer: list[str] = [root_id]
    edges: list[L] = []

    for _ in range(depth):
        if not layer:
            break
        links = await fetch_links(layer)
        if not links:
            break
        next_layer: list[str] = []
        for link in links:
            edges.append(link)
            if link.target_topic_id not in visited:
                visited.add(link.target_topic_id)
                next_layer.append(link.target_topic_id)
        layer = next_layer

    return DocGraph(nodes=sorted(visited), edges=edges)
