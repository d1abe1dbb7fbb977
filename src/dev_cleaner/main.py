"""Command line entry point for dev-cleaner."""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .audit import AuditLogError
from .clean_service import CleanService, CleanSummary
from .cleaner import CleanEngine, total_size
from .config import CleanerConfig, setup_logging
from .formatting import format_size
from .models import CleanTargetType, ScanResult
from .tree import TreeError, TreeNode, TreeService
from .walker import scan_result_from_path
from .watcher import TreeWatcher

WATCH_POLL_INTERVAL = 0.5


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="dev-cleaner",
        description="Safely remove regenerable development caches",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Clean command
    clean_parser = subparsers.add_parser("clean", help="Delete development caches")
    clean_parser.add_argument("paths", nargs="*", type=Path, help="Directories to clean")
    clean_parser.add_argument(
        "--from",
        dest="from_file",
        type=Path,
        default=None,
        help="YAML or JSON list of scan results to clean",
    )
    clean_parser.add_argument(
        "--type",
        "-t",
        dest="target_type",
        choices=[t.value for t in CleanTargetType],
        default=CleanTargetType.CACHE.value,
        help="Category recorded for paths given on the command line",
    )
    clean_parser.add_argument(
        "--confirm",
        action="store_true",
        help="Actually delete files (disables dry-run)",
    )
    clean_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not ask before deleting",
    )

    # Tree command
    tree_parser = subparsers.add_parser("tree", help="Browse a directory level by level")
    tree_parser.add_argument("path", type=Path, help="Directory to browse")
    tree_parser.add_argument(
        "--depth",
        "-d",
        type=int,
        default=1,
        help="Number of levels to expand",
    )
    tree_parser.add_argument(
        "--watch",
        "-w",
        action="store_true",
        help="Redraw the tree whenever something under it changes",
    )

    # Config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "--init",
        action="store_true",
        help="Create default configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )

    return parser.parse_args(argv)


def load_scan_results(path: Path) -> list[ScanResult]:
    """Load scan results written by an external scanner.

    Raises:
        ValueError: If the file is not a list of scan result mappings.

    """
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or []
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid scan results in {path}: {e}") from e

    if not isinstance(data, list):
        raise ValueError(f"Scan results must be a list: {path}")

    if not all(isinstance(item, dict) for item in data):
        raise ValueError(f"Each scan result must be a mapping: {path}")

    return [ScanResult.from_dict(item) for item in data]


def _results_table(items: list[ScanResult], title: str) -> Table:
    table = Table(title=title)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Path")

    for index, item in enumerate(items, start=1):
        table.add_row(str(index), item.type.value, format_size(item.size), escape(item.path))
    return table


def _print_summary(console: Console, summary: CleanSummary) -> None:
    for result in summary.results:
        if not result.success:
            kind = getattr(result.error, "kind", type(result.error).__name__)
            console.print(f"  [red]✗[/red] Failed: {escape(result.path)} ({kind}: {result.error})")
        elif result.was_dry_run:
            console.print(f"  [yellow]\\[DRY-RUN][/yellow] Would delete: {escape(result.path)}")
        else:
            console.print(f"  [green]✓[/green] Deleted: {escape(result.path)}")

    freed = format_size(summary.freed_bytes)
    suffix = f"would free {freed}" if summary.dry_run else f"{freed} freed"
    console.print(f"\n[bold]Completed![/bold] {summary.success_count} items processed ({suffix})")


def cmd_clean(config: CleanerConfig, args: argparse.Namespace) -> int:
    """Execute clean command.

    Args:
        config: Cleaner configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()

    items: list[ScanResult] = []
    if args.from_file is not None:
        try:
            items.extend(load_scan_results(args.from_file))
        except (OSError, TypeError, ValueError) as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            return 1
    items.extend(scan_result_from_path(path, args.target_type) for path in args.paths)

    if not items:
        console.print("[green]No cleanable items given[/green]")
        return 0

    if args.confirm:
        config.dry_run = False

    console.print(_results_table(items, f"{len(items)} items ({format_size(total_size(items))})"))

    if config.dry_run:
        console.print("[bold yellow] DRY-RUN MODE [/bold yellow] No files will be deleted")
        console.print("[dim]Use --confirm to actually delete files.[/dim]")
    else:
        console.print(
            f"[bold red]WARNING: About to delete {len(items)} items "
            f"({format_size(total_size(items))})[/bold red]"
        )
        if not args.yes and console.input("Type 'yes' to confirm: ").strip() != "yes":
            console.print("Cancelled.")
            return 1

    try:
        engine = CleanEngine(config)
    except AuditLogError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    with engine:
        summary = CleanService(engine).clean(items)

    _print_summary(console, summary)
    return 1 if summary.failure_count else 0


def _render_node(node: TreeNode, branch: Tree) -> None:
    for child in node.children or []:
        label = f"{escape(child.name)}{'/' if child.is_dir else ''} [dim]{format_size(child.size)}[/dim]"
        _render_node(child, branch.add(label))


def _build_tree(console: Console, service: TreeService, path: Path, depth: int) -> TreeNode:
    """Open ``path``, expand it ``depth`` levels and print it.

    Raises:
        TreeError: If the root cannot be opened.

    """
    root = service.open(scan_result_from_path(path))

    pending = [root]
    while pending:
        node = pending.pop()
        if node.depth >= depth:
            continue
        try:
            service.expand(node)
        except TreeError as e:
            console.print(f"[yellow]{escape(str(e))}[/yellow]")
            continue
        pending.extend(child for child in node.children or [] if child.needs_scanning())

    tree = Tree(f"[bold]{escape(root.path)}[/bold] [dim]{format_size(root.size)}, {root.file_count} files[/dim]")
    _render_node(root, tree)
    console.print(tree)
    return root


def cmd_tree(config: CleanerConfig, args: argparse.Namespace) -> int:
    """Execute tree command.

    Args:
        config: Cleaner configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()
    service = TreeService(max_depth=config.max_depth)

    try:
        root = _build_tree(console, service, args.path, args.depth)
    except TreeError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    if not args.watch:
        return 0

    watcher = TreeWatcher(service)
    console.print("[dim]Watching for changes, press Ctrl+C to stop[/dim]")
    try:
        while True:
            watcher.watch(root.path)
            while service.get(root.path) is root:
                time.sleep(WATCH_POLL_INTERVAL)
            console.print("[dim]Change detected, rescanning...[/dim]")
            root = _build_tree(console, service, args.path, args.depth)
    except KeyboardInterrupt:
        console.print("Stopped.")
    except TreeError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    finally:
        watcher.stop()
    return 0


def cmd_config(config: CleanerConfig, args: argparse.Namespace) -> int:
    """Execute config command.

    Args:
        config: Cleaner configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()

    if args.init:
        config_path = args.config or CleanerConfig.get_config_path()
        if config_path.exists():
            console.print(f"[yellow]Config already exists: {config_path}[/yellow]")
            return 1
        config.save(config_path)
        console.print(f"[green]Created config: {config_path}[/green]")
        return 0

    if args.show:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Dry run", str(config.dry_run))
        table.add_row("Audit log", str(config.log_file))
        table.add_row("Log level", config.log_level)
        table.add_row("Max tree depth", str(config.max_depth))
        table.add_row("Home", config.home or "(unset)")

        console.print(table)
        return 0

    console.print("[yellow]Use --init or --show[/yellow]")
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)
    try:
        config = CleanerConfig.load(args.config)
    except ValueError as e:
        Console(stderr=True).print(f"[red]{e}[/red]")
        return 1

    if args.verbose:
        config.log_level = "DEBUG"
    setup_logging(config)

    if args.command == "clean":
        return cmd_clean(config, args)
    elif args.command == "tree":
        return cmd_tree(config, args)
    elif args.command == "config":
        return cmd_config(config, args)
    else:
        print("Use one of: clean, tree, config")
        return 1


if __name__ == "__main__":
    sys.exit(main())
