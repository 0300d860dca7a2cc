# paper_retrieval/interface/cli.py

from typing import Dict, List
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt
from rich import box
from rich.text import Text

from paper_retrieval.application.embedding_indexer import EmbeddingProgress
from paper_retrieval.application.ingestion_pipeline import IngestionResult
from paper_retrieval.domain.models import Chunk, RankedResult


console = Console()


def display_welcome_banner() -> None:
    console.print(Panel.fit(
        "[bold cyan]📚 Paper Retrieval[/bold cyan]\n"
        "[dim]BM25 + sentence-transformers hybrid ranking[/dim]",
        box=box.DOUBLE,
        border_style="cyan",
    ))


def display_progress(progress: EmbeddingProgress) -> None:
    console.print(
        f"[dim]  embedding {progress.document_id}: "
        f"{progress.processed}/{progress.total} ({progress.percent:.0f}%)[/dim]"
    )


def display_ingestion_summary(source: str, result: IngestionResult) -> None:
    stats = result.stats
    report = result.embedding
    status = "[green]✓[/green]" if report.complete else "[yellow]⚠[/yellow]"
    console.print(
        f"{status} [bold]{source}[/bold]: {stats.total_chunks} chunks "
        f"(avg {stats.average_chunk_size:.0f} chars), "
        f"{report.embedded}/{report.total} newly embedded"
    )


def display_documents(documents: List[dict], sources: Dict[str, str]) -> None:
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Document")
    table.add_column("Chunks", justify="right")
    table.add_column("Embedded", justify="right")
    table.add_column("Avg length", justify="right")

    for number, entry in enumerate(documents, start=1):
        table.add_row(
            str(number),
            sources.get(entry["document_id"], entry["document_id"]),
            str(entry["total_chunks"]),
            str(entry["embedded_chunks"]),
            f"{entry['average_length']:.0f}",
        )
    console.print(table)


def prompt_for_document(count: int) -> int:
    choice = Prompt.ask(
        "\n[bold yellow]📄 Document[/bold yellow]",
        choices=[str(n) for n in range(1, count + 1)],
        default="1",
    )
    return int(choice) - 1


def prompt_for_query() -> str:
    return Prompt.ask("\n[bold yellow]❓ Your question[/bold yellow]")


def display_results(query: str, results: List[RankedResult], chunks: Dict[str, Chunk]) -> None:
    console.print(f"\n[bold]Results for:[/bold] [italic]\"{query}\"[/italic]\n")

    if not results:
        console.print("[dim]No matching chunks.[/dim]")
        return

    for rank, result in enumerate(results, start=1):
        chunk = chunks[result.chunk_id]
        score_color = _score_to_color(result.score)

        panel_content = Text()
        panel_content.append("📑 Section: ", style="dim")
        panel_content.append(chunk.section_heading, style="bold white")
        panel_content.append(f"  ({chunk.section_chunk_index + 1}/{chunk.total_section_chunks})", style="dim")
        panel_content.append("\n🎯 Score: ")
        panel_content.append(f"{result.score:.4f}", style=score_color)
        panel_content.append(_component_scores(result), style="dim")
        panel_content.append(f"\n\n{chunk.content}")

        console.print(Panel(
            panel_content,
            title=f"[bold]#{rank}[/bold]",
            border_style=score_color,
            box=box.ROUNDED,
            padding=(1, 2),
        ))


def display_error(message: str) -> None:
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}\n")


def ask_continue() -> bool:
    answer = Prompt.ask(
        "\n[dim]Search again?[/dim]",
        choices=["y", "n"],
        default="y",
    )
    return answer.lower() == "y"


def _component_scores(result: RankedResult) -> str:
    parts = []
    if result.semantic_score is not None:
        parts.append(f"semantic {result.semantic_score:.3f}")
    if result.lexical_score is not None:
        parts.append(f"bm25 {result.lexical_score:.3f}")
    return f"  ({', '.join(parts)})" if parts else ""


def _score_to_color(score: float) -> str:
    if score >= 0.75:
        return "green"
    elif score >= 0.50:
        return "yellow"
    else:
        return "red"
