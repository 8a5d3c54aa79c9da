"""Readiness diagnostics for an agent config."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from apmgate.config.schema import AgentConfig
from apmgate.config.validation import APP_NAME_LIMIT, LICENSE_LENGTH, ROLLUP_DELIMITER, ConfigValidator


@dataclass(slots=True)
class DoctorCheck:
    name: str
    ok: bool
    detail: str


def run_diagnostics(config: AgentConfig) -> dict[str, Any]:
    report = ConfigValidator().collect(config)
    checks: list[DoctorCheck] = []

    checks.append(
        DoctorCheck(
            name="validation",
            ok=report.ok,
            detail="; ".join(str(item) for item in report.violations) if report.violations else "config valid",
        )
    )
    checks.append(_license_check(config))

    rollup_names = [part for part in config.app_name.split(ROLLUP_DELIMITER) if part]
    checks.append(
        DoctorCheck(
            name="rollup_names",
            ok=config.app_name.count(ROLLUP_DELIMITER) < APP_NAME_LIMIT,
            detail=f"{len(rollup_names)} application name(s), limit {APP_NAME_LIMIT}",
        )
    )
    checks.append(_tracing_strategy_check(config))
    checks.append(_trace_threshold_check(config))

    return {
        "ok": all(item.ok for item in checks),
        "checks": [asdict(item) for item in checks],
        "warnings": list(report.warnings),
    }


def _license_check(config: AgentConfig) -> DoctorCheck:
    length = len(config.license)
    if length == LICENSE_LENGTH:
        return DoctorCheck(name="license_configured", ok=True, detail="license present")
    if length == 0 and not config.enabled:
        return DoctorCheck(name="license_configured", ok=True, detail="license not required while disabled")
    return DoctorCheck(
        name="license_configured",
        ok=False,
        detail=f"license has {length} characters, expected {LICENSE_LENGTH}",
    )


def _tracing_strategy_check(config: AgentConfig) -> DoctorCheck:
    cat = config.cross_application_tracer.enabled
    dt = config.distributed_tracer.enabled
    if cat and dt:
        return DoctorCheck(name="tracing_strategy", ok=False, detail="both tracers enabled")
    if dt:
        detail = "distributed tracing"
    elif cat:
        detail = "cross application tracing"
    else:
        detail = "no cross-service tracing"
    return DoctorCheck(name="tracing_strategy", ok=True, detail=detail)


def _trace_threshold_check(config: AgentConfig) -> DoctorCheck:
    tracer = config.transaction_tracer
    if not tracer.enabled:
        return DoctorCheck(name="trace_thresholds", ok=True, detail="transaction tracer disabled")
    if tracer.stack_trace_threshold_seconds < tracer.segment_threshold_seconds:
        return DoctorCheck(
            name="trace_thresholds",
            ok=False,
            detail=(
                f"stack trace threshold {tracer.stack_trace_threshold_seconds}s is below "
                f"segment threshold {tracer.segment_threshold_seconds}s"
            ),
        )
    mode = "apdex-relative" if tracer.threshold.is_apdex_failing else f"{tracer.threshold.duration_seconds}s"
    return DoctorCheck(name="trace_thresholds", ok=True, detail=f"trace threshold {mode}")
