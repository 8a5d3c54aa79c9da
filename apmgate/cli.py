"""CLI entry point for apmgate."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from apmgate.config.loader import initialize_config, load_config
from apmgate.config.schema import AgentConfig, config_to_dict
from apmgate.config.validation import ConfigValidator
from apmgate.core.doctor import run_diagnostics
from apmgate.core.logging import configure_logging, get_logger, log_validation_outcome


DEFAULT_CONFIG = Path("./config/apmgate.yml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apmgate")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create starter config")
    init_parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    init_parser.add_argument("--force", action="store_true")

    validate_parser = subparsers.add_parser("validate", help="Validate a config before agent start")
    validate_parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    validate_parser.add_argument(
        "--all",
        dest="report_all",
        action="store_true",
        help="Report every violation instead of the first one",
    )

    show_parser = subparsers.add_parser("show", help="Print the resolved config with defaults applied")
    show_parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)

    doctor_parser = subparsers.add_parser("doctor", help="Run configuration readiness diagnostics")
    doctor_parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)

    return parser


def mask_license(license: str) -> str:
    if len(license) <= 4:
        return "*" * len(license)
    return "*" * (len(license) - 4) + license[-4:]


def _print(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


def _load(config_path: Path) -> AgentConfig | None:
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        _print({"error": str(exc)})
        return None
    configure_logging(config.logging)
    return config


def cmd_init(config_path: Path, force: bool) -> int:
    try:
        initialize_config(config_path, force=force)
    except FileExistsError as exc:
        _print({"error": str(exc)})
        return 2
    print(f"wrote config: {config_path}")
    return 0


def cmd_validate(config_path: Path, *, report_all: bool = False) -> int:
    config = _load(config_path)
    if config is None:
        return 2
    logger = get_logger("apmgate.cli")
    validator = ConfigValidator()

    if report_all:
        report = validator.collect(config)
        first = report.violations[0] if report.violations else None
        log_validation_outcome(
            logger,
            app_name=config.app_name,
            code=first.code if first else None,
            message=str(first) if first else "",
        )
        _print(report.to_dict())
        return 0 if report.ok else 1

    error = validator.validate(config)
    if error is None:
        log_validation_outcome(logger, app_name=config.app_name, code=None)
        _print({"ok": True})
        return 0
    log_validation_outcome(logger, app_name=config.app_name, code=error.code, message=str(error))
    _print({"ok": False, "code": error.code, "error": str(error)})
    return 1


def cmd_show(config_path: Path) -> int:
    config = _load(config_path)
    if config is None:
        return 2
    payload = config_to_dict(config)
    payload["license"] = mask_license(config.license)
    _print(payload)
    return 0


def cmd_doctor(config_path: Path) -> int:
    config = _load(config_path)
    if config is None:
        return 2
    report = run_diagnostics(config)
    _print(report)
    return 0 if bool(report.get("ok")) else 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args.config, args.force)
    if args.command == "validate":
        return cmd_validate(args.config, report_all=args.report_all)
    if args.command == "show":
        return cmd_show(args.config)
    if args.command == "doctor":
        return cmd_doctor(args.config)

    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
