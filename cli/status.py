import sys

from rich.console import Console
from rich.table import Table

from infra.config import load_config
from pipeline.scanner import PhaseScanner


MARKERS = {
    "rasterize": "<name>/",
    "resolve-isbn": "<dir>/.isbn",
    "build-ocr": "<dir>-ocr.json",
    "import": "<dir>/.imported",
}


def cmd_status(args):
    try:
        config = load_config(args.workspace)
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    if not config.workspace_dir.is_dir():
        print(f"❌ Workspace not found: {config.workspace_dir}")
        sys.exit(1)

    scanner = PhaseScanner(config.workspace_dir)
    counts = scanner.status()

    table = Table(title=f"{config.workspace_dir} - pending work")
    table.add_column("Phase", style="cyan")
    table.add_column("Pending", justify="right")
    table.add_column("Marker")

    for phase, pending in counts.items():
        table.add_row(
            phase.value,
            str(pending) if pending else "[green]0[/green]",
            MARKERS[phase.value],
        )

    Console().print(table)

    if config.import_transport == "none":
        print("\nImport is disabled (import_transport: none).")
