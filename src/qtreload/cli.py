"""qtreload CLI entry point."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from qtreload.build.output_buffer import OutputBuffer, OutputLine, OutputSource
from qtreload.config import ReloadSettings, load_settings
from qtreload.errors import QtReloadError
from qtreload.events import StatusBus, StatusEvent, StatusLevel
from qtreload.platform import current_os_kind, find_project_root, resolve
from qtreload.reload.classify import classify

console = Console()

_LEVEL_STYLES = {
    StatusLevel.INFO: "green",
    StatusLevel.WARNING: "yellow",
    StatusLevel.ERROR: "bold red",
}

_SOURCE_STYLES = {
    OutputSource.STDOUT: None,
    OutputSource.STDERR: "yellow",
    OutputSource.SYSTEM: "dim",
}

OUTPUT_CHANNELS = ("build", "app", "preview")

# Compiler output arrives in bursts faster than the console drains it
CONSOLE_QUEUE_SIZE = 10000


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )
    # Status events and command output are printed by the console sinks
    for name in ("qtreload.events", "qtreload.build.executor"):
        logging.getLogger(name).setLevel(logging.WARNING if not verbose else logging.DEBUG)


def print_status(event: StatusEvent) -> None:
    console.print(event.render(), style=_LEVEL_STYLES[event.level], markup=False)


def print_output(line: OutputLine) -> None:
    console.print(line.line, style=_SOURCE_STYLES[line.source], markup=False, highlight=False)


@contextlib.asynccontextmanager
async def streaming_output(
    output: OutputBuffer, channels: Sequence[str] = OUTPUT_CHANNELS
) -> AsyncIterator[None]:
    """Print lines written to ``channels`` while the block runs.

    Lines still queued when the block exits are printed before returning.
    """
    queues = [await output.subscribe(channel, "console") for channel in channels]

    async def pump(queue: asyncio.Queue) -> None:
        while True:
            print_output(await queue.get())

    tasks = [asyncio.create_task(pump(queue)) for queue in queues]
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for channel, queue in zip(channels, queues, strict=True):
            while not queue.empty():
                print_output(queue.get_nowait())
            await output.unsubscribe(channel, "console")


def _project(root: str | None) -> tuple[Path, ReloadSettings]:
    start = Path(root).resolve() if root else Path.cwd()
    project_root = find_project_root(start) or start
    try:
        settings = load_settings(project_root)
    except QtReloadError as e:
        raise click.ClickException(str(e)) from e
    return project_root, settings


def _status_bus() -> StatusBus:
    status = StatusBus()
    status.add_callback(print_status)
    return status


def _output_buffer() -> OutputBuffer:
    return OutputBuffer(queue_size=CONSOLE_QUEUE_SIZE)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """qtreload - hot reload for Qt desktop projects."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--run/--no-run", default=True, help="Build and start the application first")
def watch(root: str | None, run: bool) -> None:
    """Watch a project and hot-reload on changes."""
    from qtreload.build.manager import BuildManager
    from qtreload.process import QmlPreview
    from qtreload.reload import HotReloadCoordinator

    project_root, settings = _project(root)

    async def do_watch() -> None:
        status = _status_bus()
        output = _output_buffer()
        manager = BuildManager(project_root, status, settings, output=output)
        preview = QmlPreview(status, settings, output=output)
        coordinator = HotReloadCoordinator(project_root, manager, preview, status, settings)

        async with streaming_output(output):
            try:
                if run:
                    try:
                        await manager.build_and_run()
                    except QtReloadError as e:
                        console.print(str(e), style="red", markup=False)

                await coordinator.start()
                if not coordinator.watching:
                    console.print("[yellow]Auto reload is disabled in qtreload.toml[/yellow]")
                    return
                console.print(f"[bold green]Watching {project_root}[/bold green] (Ctrl+C to stop)")
                while True:
                    await asyncio.sleep(1)
            finally:
                await coordinator.stop()
                await coordinator.wait_idle()
                await preview.stop()
                await manager.shutdown()

    try:
        asyncio.run(do_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Hot reload stopped[/yellow]")


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
def build(root: str | None) -> None:
    """Configure and compile the project once."""
    from qtreload.build.manager import BuildManager

    project_root, settings = _project(root)

    async def do_build() -> bool:
        output = _output_buffer()
        manager = BuildManager(project_root, _status_bus(), settings, output=output)
        async with streaming_output(output):
            outcome = await manager.build()
        return outcome.ok

    try:
        ok = asyncio.run(do_build())
    except QtReloadError as e:
        raise click.ClickException(str(e)) from e
    if not ok:
        raise SystemExit(1)


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
def run(root: str | None) -> None:
    """Build the project and run the application until it exits."""
    from qtreload.build.manager import BuildManager

    project_root, settings = _project(root)

    async def do_run() -> None:
        output = _output_buffer()
        manager = BuildManager(project_root, _status_bus(), settings, output=output)
        async with streaming_output(output):
            try:
                await manager.build_and_run()
                while manager.is_running():
                    await asyncio.sleep(0.5)
            finally:
                await manager.shutdown()

    try:
        asyncio.run(do_run())
    except QtReloadError as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        console.print("\n[yellow]Application stopped[/yellow]")


@cli.command()
@click.argument("qml_file", type=click.Path(exists=True, dir_okay=False))
def preview(qml_file: str) -> None:
    """Open a QML file in the qml engine."""
    from qtreload.process import QmlPreview

    path = Path(qml_file).resolve()
    _, settings = _project(str(path.parent))

    async def do_preview() -> None:
        output = _output_buffer()
        qml = QmlPreview(_status_bus(), settings, output=output)
        async with streaming_output(output):
            try:
                await qml.reload_view(path)
                while qml.is_open():
                    await asyncio.sleep(0.5)
            finally:
                await qml.supervisor.shutdown()

    try:
        asyncio.run(do_preview())
    except QtReloadError as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        pass


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
def profile(root: str | None) -> None:
    """Show the resolved toolchain profile for this host."""
    project_root, settings = _project(root)
    toolchain = resolve(current_os_kind(), settings)

    table = Table(title=f"Toolchain for {project_root.name}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Platform", toolchain.os_kind.value)
    table.add_row("Shell", " ".join(toolchain.shell) if toolchain.uses_shell else "-")
    table.add_row("Qt path", toolchain.qt_path or "-")
    table.add_row("Build tool", toolchain.build_tool_path)
    table.add_row("Compile tool", toolchain.compile_tool_path)
    table.add_row("QML engine", toolchain.run_tool_path)
    table.add_row("Build configuration", settings.build_configuration)
    table.add_row("Auto reload", "on" if settings.auto_reload else "off")
    for name in ("CMAKE_PREFIX_PATH", "Qt6_DIR", "QML2_IMPORT_PATH"):
        if name in toolchain.environment:
            table.add_row(name, toolchain.environment[name])

    console.print(table)


@cli.command("classify")
@click.argument("paths", nargs=-1, required=True)
def classify_paths(paths: tuple[str, ...]) -> None:
    """Show how changes to PATHS would be handled."""
    table = Table()
    table.add_column("Path", style="cyan")
    table.add_column("Class")
    table.add_column("Rebuild")

    for path in paths:
        extension_class = classify(path)
        table.add_row(path, extension_class.value, "yes" if extension_class.requires_rebuild else "no")

    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
