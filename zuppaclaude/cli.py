"""
ZuppaClaude CLI — backup, restore and cloud sync for Claude Code sessions

Usage:
    zuppaclaude <command> [options]

Examples:
    zuppaclaude backup                          # full local backup
    zuppaclaude backup --cloud gdrive           # backup and upload
    zuppaclaude backup list --cloud gdrive      # local and cloud backups
    zuppaclaude restore 2026-01-05-13.56        # restore sessions + settings
    zuppaclaude restore latest --sessions-only
    zuppaclaude session list
    zuppaclaude session export abc123 ./my-session.jsonl
    zuppaclaude cloud setup
    zuppaclaude cloud delete gdrive             # pick from a menu
    zuppaclaude settings export ~/zc-settings.json

Exit codes: 0 ok, 1 error, 2 usage error, 130 interrupted.
"""

from __future__ import annotations

import argparse
import logging
import platform
import sys
import traceback
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from zuppaclaude import __version__
from zuppaclaude.backup import BackupOrchestrator
from zuppaclaude.catalog import BackupCatalog, BackupSummary
from zuppaclaude.cloud import CloudArchiveBridge
from zuppaclaude.config import ZuppaConfig
from zuppaclaude.console import (
    color,
    disable_color,
    echo,
    header,
    human_size,
    setup_logging,
    table,
)
from zuppaclaude.environment import run_sync
from zuppaclaude.prompts import Prompts
from zuppaclaude.restore import RestoreEngine
from zuppaclaude.sessions import SessionArchiver, SessionStore
from zuppaclaude.settings import SettingsStore
from zuppaclaude.updater import PACKAGE_NAME, UpdateChecker

logger = logging.getLogger("cli")

LATEST = "latest"

_VERBOSE = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def format_age(when: datetime, now: Optional[datetime] = None) -> str:
    """``just now``, ``5m ago``, ``3h ago``, ``2d ago``, else the date."""
    now = now or datetime.now(timezone.utc)
    seconds = (now - when).total_seconds()
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    if seconds < 7 * 86400:
        return f"{int(seconds // 86400)}d ago"
    return when.strftime("%Y-%m-%d")


def _shorten(text: str, width: int, head: bool = True) -> str:
    if len(text) <= width:
        return text
    if head:
        return text[:width] + "..."
    return "..." + text[-(width - 3):]


def _make_bridge(config: ZuppaConfig) -> CloudArchiveBridge:
    return CloudArchiveBridge(config, prompts=Prompts())


def _make_orchestrator(config: ZuppaConfig) -> BackupOrchestrator:
    return BackupOrchestrator(config, cloud=_make_bridge(config))


def _print_backups(config: ZuppaConfig, backups: List[BackupSummary]) -> None:
    header("Available Backups")
    echo(f"  Host: {config.hostname}")
    echo(f"  User: {config.username}")
    echo()
    rows = []
    for b in backups:
        status = "" if b.valid else color("incomplete", "yellow")
        rows.append([
            b.backup_id,
            str(b.projects),
            str(b.sessions),
            "yes" if b.has_settings else "no",
            status,
        ])
    table(["ID", "Projects", "Sessions", "Settings", ""], rows)
    echo()


def _print_cloud_ids(remote: str, ids: List[str]) -> None:
    header(f"Cloud Backups ({remote})")
    for bid in ids:
        echo(f"  {bid}")
    echo()
    echo(f"  Total: {len(ids)} backups")
    echo()


# ---------------------------------------------------------------------------
# backup / restore
# ---------------------------------------------------------------------------

def _cmd_backup(args: argparse.Namespace, config: ZuppaConfig) -> int:
    orchestrator = _make_orchestrator(config)

    if args.action == "list":
        local, remote = orchestrator.list_sync(args.cloud)
        if local:
            _print_backups(config, local)
        else:
            logger.warning("No local backups found")
        if args.cloud:
            if remote:
                _print_cloud_ids(args.cloud, remote)
            else:
                logger.warning("No backups found on %s", args.cloud)
        return 0

    header("Full Backup")
    result = orchestrator.backup_sync(args.cloud)
    if result is None:
        return 1

    echo()
    echo(f"  Backup ID: {color(result.backup_id, 'cyan')}")
    echo(f"  Sessions:  {result.sessions} in {result.projects} projects ({human_size(result.size)})")
    echo(f"  Settings:  {'yes' if result.settings else 'no'}")
    if result.cloud_uploaded is not None:
        echo(f"  Cloud:     {'uploaded to ' + args.cloud if result.cloud_uploaded else 'failed'}")
    echo()
    echo(f"  Restore with: zuppaclaude restore {result.backup_id}")
    echo()
    return 0


def _resolve_latest(config: ZuppaConfig, cloud: Optional[str]) -> Optional[str]:
    if cloud:
        ids = _make_bridge(config).list_cloud_backups_sync(cloud)
        if ids:
            return ids[0]
        logger.error("No backups found on %s", cloud)
        return None
    latest = BackupCatalog(config).latest()
    if latest is None:
        logger.error("No backups found")
        return None
    return latest.backup_id


def _cmd_restore(args: argparse.Namespace, config: ZuppaConfig) -> int:
    backup_id = args.backup_id
    if backup_id == LATEST:
        backup_id = _resolve_latest(config, args.cloud)
        if backup_id is None:
            return 1

    header("Restore")
    summary = _make_orchestrator(config).restore_with_summary_sync(
        backup_id,
        cloud=args.cloud,
        settings_only=args.settings_only,
        sessions_only=args.sessions_only,
    )

    def mark(flag: Optional[bool]) -> str:
        if flag is None:
            return "skipped"
        return color("ok", "green") if flag else color("failed", "red")

    echo()
    echo(f"  Backup:   {summary.backup_id}")
    echo(f"  Sessions: {mark(summary.sessions_restored)}")
    if summary.sessions_report is not None:
        report = summary.sessions_report
        echo(f"            {report.total} restored, {report.renamed} renamed, {report.skipped} skipped")
    echo(f"  Settings: {mark(summary.settings_restored)}")
    echo()
    return 0 if summary.ok else 1


# ---------------------------------------------------------------------------
# session
# ---------------------------------------------------------------------------

def _session_list(args: argparse.Namespace, config: ZuppaConfig) -> int:
    projects = SessionStore(config).list_projects()
    if not projects:
        logger.warning("No sessions found")
        return 0

    header("Claude Code Sessions")
    total_sessions = 0
    total_size = 0
    for project in projects:
        echo(color(f"  {_shorten(project.original_path, 50, head=False)}", "cyan"))
        for s in project.sessions:
            kind = "agent" if s.is_agent else "main "
            echo(f"     {kind} {_shorten(s.session_id, 20):<23}  "
                 f"{human_size(s.size):>9}  {format_age(s.modified)}")
            total_sessions += 1
            total_size += s.size
        echo()
    echo(f"Total: {total_sessions} sessions, {human_size(total_size)}")
    echo()
    return 0


def _session_backup(args: argparse.Namespace, config: ZuppaConfig) -> int:
    result = SessionArchiver(config).backup()
    return 0 if result is not None else 1


def _session_backups(args: argparse.Namespace, config: ZuppaConfig) -> int:
    backups = BackupCatalog(config).list_backups()
    if not backups:
        logger.warning("No backups found")
        return 0
    _print_backups(config, backups)
    return 0


def _session_restore(args: argparse.Namespace, config: ZuppaConfig) -> int:
    backup_id = args.backup_id
    if backup_id == LATEST:
        backup_id = _resolve_latest(config, None)
        if backup_id is None:
            return 1
    return 0 if RestoreEngine(config).restore(backup_id) else 1


def _session_export(args: argparse.Namespace, config: ZuppaConfig) -> int:
    return 0 if SessionStore(config).export(args.session_id, args.output) else 1


# ---------------------------------------------------------------------------
# cloud
# ---------------------------------------------------------------------------

def _cloud_setup(args: argparse.Namespace, config: ZuppaConfig) -> int:
    header("Cloud Backup Setup")
    echo(run_sync(_make_bridge(config).setup_instructions()))
    echo()
    return 0


def _cloud_remotes(args: argparse.Namespace, config: ZuppaConfig) -> int:
    bridge = _make_bridge(config)
    if not bridge.is_installed():
        logger.error("rclone is not installed")
        logger.info("Run: zuppaclaude cloud setup")
        return 1
    remotes = run_sync(bridge.remote_types())
    if not remotes:
        logger.warning("No remotes configured (run: rclone config)")
        return 0
    header("Cloud Remotes")
    table(["Remote", "Type"], [[name, kind] for name, kind in remotes])
    echo()
    return 0


def _cloud_upload(args: argparse.Namespace, config: ZuppaConfig) -> int:
    return 0 if _make_bridge(config).upload_sync(args.remote, args.backup_id) else 1


def _cloud_download(args: argparse.Namespace, config: ZuppaConfig) -> int:
    return 0 if _make_bridge(config).download_sync(args.remote, args.backup_id) else 1


def _cloud_backups(args: argparse.Namespace, config: ZuppaConfig) -> int:
    bridge = _make_bridge(config)
    if not run_sync(bridge.ensure_ready(args.remote)):
        return 1
    ids = bridge.list_cloud_backups_sync(args.remote, check=False)
    if not ids:
        logger.warning("No backups found on %s", args.remote)
        return 0
    _print_cloud_ids(args.remote, ids)
    return 0


def _cloud_delete(args: argparse.Namespace, config: ZuppaConfig) -> int:
    bridge = _make_bridge(config)
    if args.backup_id:
        ok = bridge.delete_cloud_backup_sync(args.remote, args.backup_id)
    else:
        ok = bridge.delete_cloud_backup_interactive_sync(args.remote)
    return 0 if ok else 1


# ---------------------------------------------------------------------------
# settings
# ---------------------------------------------------------------------------

def _settings_show(args: argparse.Namespace, config: ZuppaConfig) -> int:
    lines = SettingsStore(config).describe()
    if not lines:
        logger.warning("No settings file found")
        logger.info("Settings will be created on the next backup or install")
        return 0
    header("ZuppaClaude Settings")
    for line in lines:
        echo(f"  {line}" if line else "")
    echo()
    return 0


def _settings_export(args: argparse.Namespace, config: ZuppaConfig) -> int:
    return 0 if SettingsStore(config).export(args.file) else 1


def _settings_import(args: argparse.Namespace, config: ZuppaConfig) -> int:
    return 0 if SettingsStore(config).import_file(args.file) else 1


def _settings_reset(args: argparse.Namespace, config: ZuppaConfig) -> int:
    return 0 if SettingsStore(config).reset(Prompts()) else 1


def _settings_path(args: argparse.Namespace, config: ZuppaConfig) -> int:
    echo(str(config.settings_file))
    return 0


# ---------------------------------------------------------------------------
# update / version
# ---------------------------------------------------------------------------

def _cmd_update(args: argparse.Namespace, config: ZuppaConfig) -> int:
    status = UpdateChecker().check_sync()
    if status.error:
        logger.error("Could not check for updates: %s", status.error)
        return 1
    if not status.has_update:
        logger.info("zuppaclaude %s is up to date", status.current)
        return 0
    header("Update Available!", tint="yellow")
    echo(f"  Current version: {color(status.current, 'red')}")
    echo(f"  Latest version:  {color(status.latest, 'green')}")
    echo()
    echo(f"  Upgrade with: {color(f'pip install --upgrade {PACKAGE_NAME}', 'cyan')}")
    echo()
    return 0


def _cmd_version(args: argparse.Namespace, config: ZuppaConfig) -> int:
    echo(f"zuppaclaude v{__version__}")
    if _VERBOSE:
        echo(f"Python {platform.python_version()} on {platform.platform()}")
        echo(f"Backups: {config.backup_root}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

Handler = Callable[[argparse.Namespace, ZuppaConfig], int]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zuppaclaude",
        description="Backup, restore and cloud sync for Claude Code sessions",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colours")
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    # -- backup --
    p_backup = sub.add_parser("backup", help="Full backup (sessions + settings)")
    p_backup.add_argument("action", nargs="?", choices=["list"], help="List backups instead")
    p_backup.add_argument("--cloud", metavar="REMOTE", help="Also upload to this rclone remote")
    p_backup.set_defaults(handler=_cmd_backup)

    # -- restore --
    p_restore = sub.add_parser("restore", help="Restore from a backup")
    p_restore.add_argument("backup_id", help=f"Backup ID, or '{LATEST}'")
    p_restore.add_argument("--cloud", metavar="REMOTE", help="Download from this remote first")
    only = p_restore.add_mutually_exclusive_group()
    only.add_argument("--settings-only", action="store_true", help="Restore settings only")
    only.add_argument("--sessions-only", action="store_true", help="Restore sessions only")
    p_restore.set_defaults(handler=_cmd_restore)

    # -- session --
    p_session = sub.add_parser("session", help="Manage Claude Code sessions")
    s_sub = p_session.add_subparsers(dest="action", metavar="<action>")
    s_sub.required = True
    s_sub.add_parser("list", help="List all sessions").set_defaults(handler=_session_list)
    s_sub.add_parser("backup", help="Back up sessions only").set_defaults(handler=_session_backup)
    s_sub.add_parser("backups", help="List local backups").set_defaults(handler=_session_backups)
    p = s_sub.add_parser("restore", help="Restore sessions from a backup")
    p.add_argument("backup_id")
    p.set_defaults(handler=_session_restore)
    p = s_sub.add_parser("export", help="Export one session to a file")
    p.add_argument("session_id", help="Session ID or prefix")
    p.add_argument("output", nargs="?", help="Output file (default: ./<id>.jsonl)")
    p.set_defaults(handler=_session_export)

    # -- cloud --
    p_cloud = sub.add_parser("cloud", help="Cloud remotes (rclone)")
    c_sub = p_cloud.add_subparsers(dest="action", metavar="<action>")
    c_sub.required = True
    c_sub.add_parser("setup", help="Show rclone setup instructions").set_defaults(handler=_cloud_setup)
    c_sub.add_parser("remotes", help="List configured remotes").set_defaults(handler=_cloud_remotes)
    for name, help_text, handler in (
        ("upload", "Upload one or all backups", _cloud_upload),
        ("download", "Download one or all backups", _cloud_download),
        ("delete", "Delete a cloud backup (menu when no ID)", _cloud_delete),
    ):
        p = c_sub.add_parser(name, help=help_text)
        p.add_argument("remote")
        p.add_argument("backup_id", nargs="?")
        p.set_defaults(handler=handler)
    p = c_sub.add_parser("backups", help="List backups on a remote")
    p.add_argument("remote")
    p.set_defaults(handler=_cloud_backups)

    # -- settings --
    p_settings = sub.add_parser("settings", help="Manage ZuppaClaude settings")
    t_sub = p_settings.add_subparsers(dest="action", metavar="<action>")
    t_sub.required = True
    t_sub.add_parser("show", help="Display current settings").set_defaults(handler=_settings_show)
    p = t_sub.add_parser("export", help="Export settings to a file")
    p.add_argument("file")
    p.set_defaults(handler=_settings_export)
    p = t_sub.add_parser("import", help="Import settings from a file")
    p.add_argument("file")
    p.set_defaults(handler=_settings_import)
    t_sub.add_parser("reset", help="Delete the settings file").set_defaults(handler=_settings_reset)
    t_sub.add_parser("path", help="Print the settings file path").set_defaults(handler=_settings_path)

    # -- update / version --
    sub.add_parser("update", help="Check for a newer release").set_defaults(handler=_cmd_update)
    sub.add_parser("version", help="Show version").set_defaults(handler=_cmd_version)

    return parser


def _parse_global_args(argv: List[str]) -> Tuple[List[str], argparse.Namespace]:
    """Pull ``--verbose``/``--no-color`` from anywhere in *argv*."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--verbose", action="store_true", default=False)
    parser.add_argument("--no-color", action="store_true", default=False)
    global_ns, remaining = parser.parse_known_args(argv)
    return remaining, global_ns


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None, config: Optional[ZuppaConfig] = None) -> int:
    """Parse *argv*, run one command and return its exit code."""
    global _VERBOSE

    if argv is None:
        argv = sys.argv[1:]

    remaining, global_ns = _parse_global_args(argv)
    _VERBOSE = global_ns.verbose
    if global_ns.no_color:
        disable_color()
    setup_logging(verbose=_VERBOSE)

    parser = build_parser()
    if not remaining:
        parser.print_help()
        return 0

    try:
        args = parser.parse_args(remaining)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else (2 if exc.code else 0)

    handler: Optional[Handler] = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    config = config or ZuppaConfig.from_env()
    logger.debug("Backup root: %s", config.backup_root)
    try:
        return handler(args, config)
    except KeyboardInterrupt:
        echo("\nAborted.")
        return 130
    except Exception as exc:
        if _VERBOSE:
            traceback.print_exc()
        logger.error("%s failed: %s", args.command, exc)
        return 1


def cli() -> None:
    """Entry point for console_scripts / direct execution."""
    try:
        code = main()
        sys.exit(code or 0)
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(130)


if __name__ == "__main__":
    cli()
