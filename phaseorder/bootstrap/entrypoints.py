"""
bootstrap/entrypoints.py - Command line entry points

Commands:
  reconcile FILE   Reconcile a JSON phase dump and print the order
  serve            Start the HTTP API
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, List, Optional
import argparse
import json
import logging
import sys

from phaseorder.core.enums import EditMode
from phaseorder.core.records import PhaseRecord, TemplateEntry
from phaseorder.reconcile.reconciler import ReconcileResult, reconcile
from .config import load_config

logger = logging.getLogger("bootstrap.entrypoints")


def setup_logging(level: str = "INFO", log_file: str = None, json_format: bool = False) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
        json_format: Use JSON format for logs
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:

        class JSONFormatter(logging.Formatter):
            def format(self, record):
                return json.dumps({
                    "timestamp": self.formatTime(record),
                    "level": record.levelname,
                    "logger": record.name,
                    "message": record.getMessage(),
                })

        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    # Logs go to stderr so command output on stdout stays parseable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _read_json(path: str) -> Any:
    with open(Path(path), encoding="utf-8") as f:
        return json.load(f)


def load_dump(path: str, template_path: str = None):
    """
    Read phases and an optional template from JSON.

    The phase file is either a list of rows or an object with ``phases``
    and optionally ``template``; ``template_path`` overrides the latter.
    """
    data = _read_json(path)
    if isinstance(data, list):
        rows, template_rows = data, None
    else:
        rows, template_rows = data.get("phases", []), data.get("template")

    if template_path:
        template_rows = _read_json(template_path)

    phases = [PhaseRecord.from_dict(r) for r in rows]
    template = None
    if template_rows is not None:
        template = [TemplateEntry.from_dict(t) for t in template_rows]
    return phases, template


def format_result(result: ReconcileResult) -> str:
    """Plain text rendering of a reconcile result."""
    lines = []
    for phase in result.phases:
        flags = []
        if phase.is_standard:
            flags.append("standard")
        if phase.is_linked:
            flags.append(f"linked:{phase.source_project_id}")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        lines.append(f"{phase.resolved_index:>3}. {phase.name:<30} {phase.position_rule.label():<16}{suffix}")

    if result.anomalies:
        lines.append("")
        lines.append(f"Anomalies ({len(result.anomalies)}):")
        for anomaly in result.anomalies:
            lines.append(f"  {anomaly.severity.value.upper():<8} {anomaly.code.name:<24} {anomaly.message}")
    return "\n".join(lines)


def _cmd_reconcile(parsed: argparse.Namespace) -> int:
    try:
        phases, template = load_dump(parsed.file, parsed.template)
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"Cannot read {parsed.file}: {e}")
        return 2

    mode = EditMode.TEMPLATE_EDIT if parsed.mode == "template" else EditMode.PROJECT_EDIT
    result = reconcile(phases, template, mode)

    if parsed.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print(format_result(result))

    if parsed.strict and result.anomalies:
        return 1
    return 0


def _cmd_serve(parsed: argparse.Namespace) -> int:
    import uvicorn

    from phaseorder.deployment.api import create_app

    config = load_config(parsed.config)
    if parsed.host:
        config.api.host = parsed.host
    if parsed.port:
        config.api.port = parsed.port
    if parsed.storage:
        config.storage.backend = parsed.storage

    app = create_app(config)
    uvicorn.run(app, host=config.api.host, port=config.api.port, log_level=parsed.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Phase position reconciliation engine",
        prog="phaseorder",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration file",
        default=None,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path",
        default=None,
    )

    commands = parser.add_subparsers(dest="command")

    rec = commands.add_parser("reconcile", help="Reconcile a JSON phase dump")
    rec.add_argument("file", help="JSON file of phase rows")
    rec.add_argument("-t", "--template", help="JSON file of template entries", default=None)
    rec.add_argument("-m", "--mode", choices=["project", "template"], default="project")
    rec.add_argument("--json", action="store_true", help="Output in JSON format")
    rec.add_argument("--strict", action="store_true", help="Exit 1 when anomalies are found")
    rec.set_defaults(handler=_cmd_reconcile)

    serve = commands.add_parser("serve", help="Start the HTTP API")
    serve.add_argument("-H", "--host", help="API host", default=None)
    serve.add_argument("-p", "--port", type=int, help="API port", default=None)
    serve.add_argument("--storage", choices=["memory", "json"], default=None)
    serve.set_defaults(handler=_cmd_serve)

    return parser


def cli_main(args: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    log_level = "DEBUG" if parsed.verbose else parsed.log_level
    setup_logging(level=log_level, log_file=parsed.log_file)

    try:
        return parsed.handler(parsed)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


def main():
    """Main entry point for the package."""
    sys.exit(cli_main(sys.argv[1:]))


if __name__ == "__main__":
    main()
