"""Rich-powered console output for mdrules."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from mdrules import __version__
from mdrules.context.models import ContextPackage
from mdrules.parser.models import DocumentNode


class Console:
    """Terminal output for mdrules using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        """Show the mdrules banner."""
        self.console.print(
            Panel(
                f"[bold cyan]mdrules[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Markdown docs as context for AI agents[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_stats(self, stats: dict) -> None:
        """Display index statistics in a table."""
        table = Table(title="Document Index Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Markdown documents", str(stats.get("documents", 0)))
        table.add_row("Other files", str(stats.get("other_files", 0)))
        table.add_row("Load errors", str(stats.get("errors", 0)))
        table.add_section()
        table.add_row("Always applied", str(stats.get("always_apply", 0)))
        table.add_row("With globs", str(stats.get("with_globs", 0)))
        table.add_row("Agent attachable", str(stats.get("agent_attachable", 0)))
        table.add_section()
        table.add_row("Linked pairs", str(stats.get("total_edges", 0)))
        table.add_row("  reference links", str(stats.get("references", 0)))
        table.add_row("  embed links", str(stats.get("embeds", 0)))

        self.console.print(table)

    def show_docs(self, docs: list[DocumentNode], relative) -> None:
        """List documents an agent can select by description."""
        if not docs:
            self.warning("No documents with a description (and no globs or alwaysApply) found")
            return

        table = Table(title="Agent-attachable documents", border_style="cyan")
        table.add_column("Description", style="bold")
        table.add_column("File", style="cyan")
        for doc in docs:
            table.add_row(doc.meta.description or "", relative(doc.path))
        self.console.print(table)

    def show_package(self, package: ContextPackage, relative) -> None:
        """Display the assembled context as a tree grouped by inclusion reason."""
        counts = package.counts()
        tree = Tree(
            f"[bold cyan]Context[/bold cyan] [dim]({len(package.items)} documents, "
            f"hoist {'on' if package.hoist else 'off'}, "
            f"{package.assembly_time_ms:.1f}ms)[/dim]"
        )
        for item in package.items:
            label = f"[bold]{relative(item.path)}[/bold] [dim]({item.classification.value})[/dim]"
            node = tree.add(label)
            if item.is_related:
                node.add(
                    f"[dim]via[/dim] '{item.linked_via_anchor}' "
                    f"[dim]from[/dim] [cyan]{relative(item.linked_from_path or '')}[/cyan]"
                )
        self.console.print(tree)

        summary = ", ".join(f"{n} {kind}" for kind, n in counts.items() if n)
        if summary:
            self.console.print(f"  {summary}")
