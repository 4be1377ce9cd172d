"""CLI commands for vidblog using Typer and Rich.

Implements the workflow commands:
- create: Create a workflow for a video source
- list: List workflows in a table
- status: Show a workflow with its seven steps
- run / run-all: Execute one step, or every pending step in order
- start / pause: Lifecycle transitions
- logs: Show progress log entries
- delete: Delete a workflow
- videos: List downloaded videos
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vidblog.config import settings
from vidblog.db import init_database
from vidblog.orchestrator.errors import StepExecutionError, WorkflowError
from vidblog.orchestrator.service import WorkflowService
from vidblog.orchestrator.steps import STEP_NUMBERS
from vidblog.orchestrator.videos import VideoLibrary
from vidblog.runtime import build_workflow_service
from vidblog.schemas.workflow import StepStatus, WorkflowConfig, WorkflowStatus

app = typer.Typer(name="vidblog", help="Turn videos into transcripts, screenshots, blog posts and social posts")
console = Console()


@app.callback()
def main():
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _service() -> WorkflowService:
    await init_database()
    return build_workflow_service()


def _run(coro) -> None:
    """Run a command coroutine, turning workflow errors into a clean exit."""
    try:
        asyncio.run(coro)
    except WorkflowError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)


def _get_status_color(status: str) -> str:
    """Get Rich color for a workflow or step status.

    Color coding:
    - completed: green
    - error: red
    - in_progress: yellow
    - paused: blue
    - created/pending: dim
    """
    if status == "completed":
        return "green"
    elif status == "error":
        return "red"
    elif status == "in_progress":
        return "yellow"
    elif status == "paused":
        return "blue"
    return "dim"


def _colored(status: str) -> str:
    color = _get_status_color(status)
    return f"[{color}]{status}[/{color}]"


@app.command()
def create(
    video_source: str = typer.Argument(..., help="Local video path, YouTube URL or direct video URL"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Transcription provider: whisper-local, openai, groq"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Transcription model"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Spoken language code"),
    max_key_frames: Optional[int] = typer.Option(None, "--max-key-frames", help="Approximate screenshot count"),
):
    """Create a new workflow with every step pending."""
    try:
        config = WorkflowConfig(provider=provider, model=model, language=language, max_key_frames=max_key_frames)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    _run(_create_async(video_source, config))


async def _create_async(video_source: str, config: WorkflowConfig):
    service = await _service()
    workflow = await service.create(video_source, config=config)
    console.print(f"[green]Created workflow:[/green] {workflow.id}")
    console.print(f"Run it with: vidblog run-all {workflow.id}")


@app.command("list")
def list_workflows(
    status: Optional[WorkflowStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", help="Maximum rows"),
    offset: int = typer.Option(0, "--offset", help="Rows to skip"),
):
    """List workflows, newest first."""
    _run(_list_async(status, limit, offset))


async def _list_async(status: Optional[WorkflowStatus], limit: int, offset: int):
    service = await _service()
    workflows, total = await service.list(status=status, limit=limit, offset=offset)

    if not workflows:
        console.print("[yellow]No workflows found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("ID", style="dim")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Step")
    table.add_column("Created")

    for workflow in workflows:
        source = workflow.video_source
        source_display = source if len(source) <= 50 else source[:47] + "..."
        done = sum(1 for s in workflow.step_statuses.values() if s == StepStatus.completed)
        table.add_row(
            workflow.id[:8] + "...",
            source_display,
            _colored(workflow.status.value),
            f"{done}/{len(STEP_NUMBERS)}",
            workflow.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    console.print(f"[dim]Showing {len(workflows)} of {total}[/dim]")


@app.command()
def status(workflow_id: str = typer.Argument(..., help="Workflow id")):
    """Show a workflow and the status of each step."""
    _run(_status_async(workflow_id))


async def _status_async(workflow_id: str):
    service = await _service()
    workflow = await service.get(workflow_id)
    steps = await service.list_step_statuses(workflow_id)

    info_lines = [
        f"[bold]ID:[/bold] {workflow.id}",
        f"[bold]Source:[/bold] {workflow.video_source}",
        f"[bold]Status:[/bold] {_colored(workflow.status.value)}",
        f"[bold]Current Step:[/bold] {workflow.current_step}",
        f"[bold]Created:[/bold] {workflow.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"[bold]Updated:[/bold] {workflow.updated_at.strftime('%Y-%m-%d %H:%M:%S')}",
    ]
    if workflow.video_name:
        info_lines.append(f"[bold]Video:[/bold] {workflow.video_name}")
    if workflow.step6_output:
        info_lines.append(f"[bold]Blog:[/bold] [green]{workflow.step6_output.blog_path}[/green]")
    if workflow.error_message:
        info_lines.append(f"[bold]Error:[/bold] [red]{workflow.error_message}[/red]")

    console.print(Panel("\n".join(info_lines), title="[bold]Workflow Status[/bold]", border_style="blue"))

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("#")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Ready")
    for info in steps:
        ready = "yes" if info.executable else f"needs {', '.join(map(str, info.missing))}"
        table.add_row(str(info.step), info.name, _colored(info.status.value), ready)
    console.print(table)


@app.command()
def run(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    step: int = typer.Argument(..., help="Step number (1-7)"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip prerequisite and already-completed checks"),
):
    """Execute a single step."""
    _run(_run_async(workflow_id, step, force))


async def _run_async(workflow_id: str, step: int, force: bool):
    service = await _service()
    console.print(f"[yellow]Running step {step}...[/yellow]")
    try:
        await service.execute_step(workflow_id, step, force=force)
    except StepExecutionError as e:
        console.print(f"[red]✗ Step {step} failed:[/red] {e.message}")
        console.print(f"[yellow]You can retry with:[/yellow] vidblog run {workflow_id} {step} --force")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Step {step} completed")


@app.command("run-all")
def run_all(workflow_id: str = typer.Argument(..., help="Workflow id")):
    """Execute every step that is not completed yet, in order."""
    _run(_run_all_async(workflow_id))


async def _run_all_async(workflow_id: str):
    service = await _service()
    await service.start(workflow_id)

    for step in STEP_NUMBERS:
        workflow = await service.get(workflow_id)
        if workflow.status == WorkflowStatus.paused:
            console.print("[yellow]Workflow paused; stopping.[/yellow]")
            return
        if workflow.step_statuses[step] == StepStatus.completed:
            continue

        console.print(f"[yellow]Running step {step}...[/yellow]")
        try:
            await service.execute_step(workflow_id, step)
        except StepExecutionError as e:
            console.print()
            console.print(f"[red]✗ Step {step} failed:[/red] {e.message}")
            console.print(f"[yellow]You can continue with:[/yellow] vidblog run-all {workflow_id}")
            raise typer.Exit(code=1)
        console.print(f"[green]✓[/green] Step {step} completed")

    workflow = await service.get(workflow_id)
    console.print(f"[green]✓[/green] Workflow {_colored(workflow.status.value)}")
    if workflow.step6_output:
        console.print(f"[green]Blog:[/green] {workflow.step6_output.blog_path}")


@app.command()
def start(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    from_step: Optional[int] = typer.Option(None, "--from-step", help="Reset this step and every later one"),
):
    """Mark a workflow in progress."""
    _run(_start_async(workflow_id, from_step))


async def _start_async(workflow_id: str, from_step: Optional[int]):
    service = await _service()
    workflow = await service.start(workflow_id, from_step=from_step)
    console.print(f"Workflow {workflow.id} is {_colored(workflow.status.value)}")


@app.command()
def pause(workflow_id: str = typer.Argument(..., help="Workflow id")):
    """Mark a workflow paused. A running step finishes normally."""
    _run(_pause_async(workflow_id))


async def _pause_async(workflow_id: str):
    service = await _service()
    workflow = await service.pause(workflow_id)
    console.print(f"Workflow {workflow.id} is {_colored(workflow.status.value)}")


@app.command()
def logs(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    step: Optional[int] = typer.Option(None, "--step", help="Only entries of this step"),
    limit: int = typer.Option(100, "--limit", help="Maximum entries"),
):
    """Show progress log entries, newest first."""
    _run(_logs_async(workflow_id, step, limit))


async def _logs_async(workflow_id: str, step: Optional[int], limit: int):
    service = await _service()
    entries = await service.logs(workflow_id, step=step, limit=limit)

    if not entries:
        console.print("[yellow]No log entries[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Time", style="dim")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Message")
    for entry in entries:
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(entry.step),
            _colored(entry.status),
            entry.message,
        )
    console.print(table)


@app.command()
def delete(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    delete_assets: bool = typer.Option(False, "--delete-assets", help="Also remove the downloaded video"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a workflow and its logs."""
    if not yes:
        typer.confirm(f"Delete workflow {workflow_id}?", abort=True)
    _run(_delete_async(workflow_id, delete_assets))


async def _delete_async(workflow_id: str, delete_assets: bool):
    service = await _service()
    await service.delete(workflow_id, delete_assets=delete_assets)
    console.print(f"[green]Deleted workflow:[/green] {workflow_id}")


@app.command()
def videos():
    """List downloaded videos, newest first."""
    _run(_videos_async())


async def _videos_async():
    service = await _service()
    library = VideoLibrary(service, service.file_manager)
    entries = await library.list()

    if not entries:
        console.print("[yellow]No downloaded videos[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Name")
    table.add_column("Title")
    table.add_column("Size (MB)", justify="right")
    table.add_column("Downloaded")
    table.add_column("Workflows", justify="right")

    for video in entries:
        table.add_row(
            video.name,
            video.title or "-",
            f"{video.size / (1024 * 1024):.1f}",
            video.downloaded_at.strftime("%Y-%m-%d %H:%M"),
            str(len(video.workflows)),
        )

    console.print(table)
