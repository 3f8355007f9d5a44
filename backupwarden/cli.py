"""Command-line interface for BackupWarden."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .cli_progress import run_with_progress
from .config import EXAMPLE_APP_CONFIG, config, load_app_configs
from .exceptions import BackupWardenConfigError, BackupWardenError
from .models import AppConfig
from .output import OutputFormatter
from .sync import (
    AppSyncReport,
    QueueDispatcher,
    SpecialFolderResolver,
    SyncEngine,
    SyncMode,
    SyncStatus,
)

logger = logging.getLogger(__name__)

MODE_CHOICE = click.Choice([mode.value for mode in SyncMode], case_sensitive=False)


def _resolve_apps(ctx: Any, app_ids: tuple[str, ...]) -> list[AppConfig]:
    """Load the configured applications, optionally narrowed to ``app_ids``.

    Raises:
        BackupWardenConfigError: If no config file is known or an id is
            unknown
    """
    files = list(ctx.obj["config_files"]) or config.config_files
    if not files:
        raise BackupWardenConfigError(
            "No application config file given. Use --config or run 'init'."
        )
    return load_app_configs(files).select(list(app_ids))


def _resolve_backup_root(ctx: Any) -> str:
    backup_root = ctx.obj["backup_root"] or config.backup_root
    if not backup_root:
        raise BackupWardenConfigError(
            "No backup root configured. Use --backup-root or run 'init'."
        )
    return str(backup_root)


def _report_rows(reports: list[AppSyncReport], out: OutputFormatter) -> list[dict]:
    return [
        {
            "app": report.app_id,
            "status": out.status_text(report.overall_status),
            "issues": len(report.path_issues),
            "differences": len(report.file_differences),
        }
        for report in reports
    ]


def _output_reports(
    reports: list[AppSyncReport], out: OutputFormatter, details: bool
) -> None:
    if out.json_output:
        out.output_json([report.to_dict() for report in reports])
        return

    out.output_table(
        _report_rows(reports, out),
        ["app", "status", "issues", "differences"],
        {
            "app": "Application",
            "status": "Status",
            "issues": "Path Issues",
            "differences": "Differences",
        },
    )

    for report in reports:
        if details:
            out.print("")
            out.print(f"[bold]{report.app_id}[/bold]")
            out.print(report.details(), markup=False)
        elif report.overall_status not in (SyncStatus.IN_SYNC, SyncStatus.SYNCING):
            out.print("")
            out.print(f"[bold]{report.app_id}[/bold]")
            out.print(report.summary(), markup=False)


def _exit_code(reports: list[AppSyncReport]) -> int:
    if any(report.overall_status == SyncStatus.FAILED for report in reports):
        return 1
    return 0


@click.group()
@click.option(
    "--config",
    "-c",
    "config_files",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="Application config YAML file (repeatable, overrides saved files)",
)
@click.option(
    "--backup-root",
    "-b",
    envvar="BACKUPWARDEN_BACKUP_ROOT",
    type=click.Path(file_okay=False),
    help="Backup root folder (overrides the saved setting)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="backupwarden")
@click.pass_context
def main(
    ctx: Any,
    config_files: tuple[str, ...],
    backup_root: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """BackupWarden - Back up and restore application settings and data."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["config_files"] = config_files
    ctx.obj["backup_root"] = backup_root
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        # Enable debug logging for backupwarden modules
        logging.getLogger("backupwarden").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--backup-root",
    "-b",
    "init_backup_root",
    prompt="Backup root folder",
    type=click.Path(file_okay=False),
    help="Folder that will hold one subfolder per application",
)
@click.option(
    "--app-config",
    "-a",
    "app_configs",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Application config YAML file to register (repeatable)",
)
@click.option(
    "--example",
    type=click.Path(dir_okay=False),
    help="Write an example application config to this file and register it",
)
@click.pass_context
def init(
    ctx: Any,
    init_backup_root: str,
    app_configs: tuple[str, ...],
    example: Optional[str],
) -> None:
    """Initialize BackupWarden configuration.

    Stores the backup root and the application config files in
    ~/.config/backupwarden/config.json for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        files = list(app_configs)
        if example:
            example_path = Path(example)
            if example_path.exists() and not click.confirm(
                f"{example_path} exists. Overwrite?", default=False
            ):
                out.warning("Configuration cancelled.")
                ctx.exit(1)
            example_path.parent.mkdir(parents=True, exist_ok=True)
            example_path.write_text(EXAMPLE_APP_CONFIG, encoding="utf-8")
            out.success(f"✓ Example config written to {example_path}")
            files.append(example)

        # Validate before saving anything
        if files:
            apps = load_app_configs(files).apps
            out.info(f"Found {len(apps)} application(s)")

        config.save_backup_root(init_backup_root)
        for path in files:
            config.add_config_file(path)

        out.print_summary(
            "Initialization Complete",
            [
                ("Status", "✓ Configuration saved successfully"),
                ("Config file", str(config.get_config_path())),
                ("Backup root", str(config.backup_root)),
                ("App configs", str(len(config.config_files))),
            ],
        )

    except BackupWardenError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
    except OSError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)


@main.command()
@click.pass_context
def apps(ctx: Any) -> None:
    """List the configured applications."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        app_list = _resolve_apps(ctx, ())
    except BackupWardenError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json([app.to_dict() for app in app_list])
        return

    if not app_list:
        out.warning("No applications configured.")
        return

    out.output_table(
        [
            {
                "id": app.id,
                "name": app.name,
                "paths": "\n".join(path or "(empty)" for path in app.paths),
            }
            for app in app_list
        ],
        ["id", "name", "paths"],
        {"id": "ID", "name": "Name", "paths": "Paths"},
    )


@main.command()
@click.pass_context
def folders(ctx: Any) -> None:
    """Show the special-folder tokens and their paths on this machine."""
    out: OutputFormatter = ctx.obj["out"]
    resolver = SpecialFolderResolver()

    if out.json_output:
        out.output_json(resolver.folders)
        return

    out.output_table(
        [
            {"token": token, "path": path or "(not available)"}
            for token, path in resolver.folders.items()
        ],
        ["token", "path"],
        {"token": "Token", "path": "Path"},
    )


@main.command()
@click.option(
    "--app", "-a", "app_ids", multiple=True, help="Only check this application id"
)
@click.option("--details", "-d", is_flag=True, help="List every issue and difference")
@click.pass_context
def status(ctx: Any, app_ids: tuple[str, ...], details: bool) -> None:
    """Compare live application files with the backup.

    Nothing is modified.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        app_list = _resolve_apps(ctx, app_ids)
        backup_root = _resolve_backup_root(ctx)
        with SyncEngine() as engine:
            reports = engine.update_status(app_list, backup_root)
    except BackupWardenError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    _output_reports(reports, out, details)
    ctx.exit(_exit_code(reports))


def _run_transfer(
    ctx: Any,
    operation: str,
    mode: str,
    app_ids: tuple[str, ...],
    trash: bool,
    yes: bool,
    details: bool,
) -> None:
    out: OutputFormatter = ctx.obj["out"]
    sync_mode = SyncMode.from_string(mode)

    try:
        app_list = _resolve_apps(ctx, app_ids)
        backup_root = _resolve_backup_root(ctx)
    except BackupWardenError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if not app_list:
        out.warning("No applications configured.")
        return

    if sync_mode.allows_delete and not yes:
        target = "backup" if operation == "backup" else "live"
        if not click.confirm(
            f"{sync_mode.display_name} deletes {target} files that are missing "
            f"on the other side. Continue?",
            default=False,
        ):
            out.warning("Cancelled.")
            ctx.exit(1)
            return

    out.info(
        f"{operation.capitalize()} of {len(app_list)} application(s) "
        f"({sync_mode.display_name}) using {backup_root}"
    )

    dispatcher = QueueDispatcher()
    engine = SyncEngine(dispatcher=dispatcher, use_trash=trash)
    start = engine.start_backup if operation == "backup" else engine.start_restore
    description = "Backing up" if operation == "backup" else "Restoring"

    try:
        reports = run_with_progress(
            start,
            app_list,
            backup_root,
            sync_mode.value,
            dispatcher,
            description,
            show_progress=not (out.quiet or out.json_output),
        )
    except KeyboardInterrupt:
        out.warning(f"\n{operation.capitalize()} cancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT
        return
    finally:
        engine.close()

    _output_reports(reports, out, details)
    ctx.exit(_exit_code(reports))


@main.command()
@click.option(
    "--mode",
    "-m",
    type=MODE_CHOICE,
    default=SyncMode.COPY.value,
    show_default=True,
    help="copy: add/overwrite only; sync: also delete stale backup files",
)
@click.option(
    "--app", "-a", "app_ids", multiple=True, help="Only back up this application id"
)
@click.option("--trash", is_flag=True, help="Move deleted files to the OS trash")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--details", "-d", is_flag=True, help="List every issue and difference")
@click.pass_context
def backup(
    ctx: Any,
    mode: str,
    app_ids: tuple[str, ...],
    trash: bool,
    yes: bool,
    details: bool,
) -> None:
    """Back up application files into the backup root."""
    _run_transfer(ctx, "backup", mode, app_ids, trash, yes, details)


@main.command()
@click.option(
    "--mode",
    "-m",
    type=MODE_CHOICE,
    default=SyncMode.COPY.value,
    show_default=True,
    help="copy: add/overwrite only; sync: also delete live files not in the backup",
)
@click.option(
    "--app", "-a", "app_ids", multiple=True, help="Only restore this application id"
)
@click.option("--trash", is_flag=True, help="Move deleted files to the OS trash")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--details", "-d", is_flag=True, help="List every issue and difference")
@click.pass_context
def restore(
    ctx: Any,
    mode: str,
    app_ids: tuple[str, ...],
    trash: bool,
    yes: bool,
    details: bool,
) -> None:
    """Restore application files from the backup root."""
    _run_transfer(ctx, "restore", mode, app_ids, trash, yes, details)


if __name__ == "__main__":
    main()
