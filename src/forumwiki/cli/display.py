"""Rich rendering for CLI output.

Accepts an optional :class:`~rich.console.Console` for dependency
injection in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from collections.abc import Sequence

    from forumwiki.domain.graph import DocGraph
    from forumwiki.storage.models import DocLink, WikiRevision
    from forumwiki.storage.repository import ContributorStat

_SUMMARY_LEN = 60


def _truncate(text: str, limit: int = _SUMMARY_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class ForumDisplay:
    """Tables and trees for contributors, revisions, and link graphs."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    def contributors(self, topic_id: str, stats: Sequence[ContributorStat]) -> None:
        if not stats:
            self._console.print(f"No contributors for topic {topic_id}.")
            return
        table = Table(title=f"Contributors to {topic_id}")
        table.add_column("User", style="cyan")
        table.add_column("Weight", justify="right", style="green")
        for stat in stats:
            table.add_row(stat.user_id, str(stat.total_weight))
        self._console.print(table)

    def revisions(self, topic_id: str, revisions: Sequence[WikiRevision]) -> None:
        if not revisions:
            self._console.print(f"No wiki revisions for topic {topic_id}.")
            return
        table = Table(title=f"Wiki history of {topic_id}")
        table.add_column("Revision", style="cyan")
        table.add_column("Editor")
        table.add_column("Created")
        table.add_column("Parent", style="dim")
        table.add_column("Summary")
        for rev in revisions:
            table.add_row(
                rev.id,
                rev.editor_id,
                rev.created_at.strftime("%Y-%m-%d %H:%M"),
                rev.parent_revision_id or "-",
                _truncate(rev.summary),
            )
        self._console.print(table)

    def graph(self, root_id: str, depth: int, graph: DocGraph[DocLink]) -> None:
        """Render edges grouped by source, followed by the node set."""
        tree = Tree(f"[bold]{root_id}[/bold] (depth {depth})")
        by_source: dict[str, Tree] = {}
        for edge in graph.edges:
            branch = by_source.get(edge.source_topic_id)
            if branch is None:
                branch = tree.add(edge.source_topic_id)
                by_source[edge.source_topic_id] = branch
            branch.add(f"-> {edge.target_topic_id} [dim]({edge.link_type})[/dim]")
        self._console.print(tree)
        self._console.print(f"Nodes ({len(graph.nodes)}): {', '.join(graph.nodes)}")
