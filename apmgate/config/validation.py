"""Validation gate run before an agent config is activated."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Callable

from apmgate.config.schema import AgentConfig


LICENSE_LENGTH = 40
APP_NAME_LIMIT = 3
ROLLUP_DELIMITER = ";"


class ConfigValidationError(ValueError):
    code = "invalid_config"
    message = "invalid agent config"

    def __init__(self) -> None:
        super().__init__(self.message)


class CredentialLengthInvalid(ConfigValidationError):
    code = "credential_length_invalid"
    message = f"license length is not {LICENSE_LENGTH}"


class ApplicationNameRequired(ConfigValidationError):
    code = "application_name_required"
    message = "string app_name required"


class SecurityPolicyConflict(ConfigValidationError):
    code = "security_policy_conflict"
    message = (
        "security_policies_token and high_security are incompatible; please ensure high_security "
        "is set to false if security_policies_token is a non-empty string and a security policy "
        "has been set for your account"
    )


class TracingStrategyConflict(ConfigValidationError):
    code = "tracing_strategy_conflict"
    message = (
        "cross_application_tracer and distributed_tracer cannot be enabled simultaneously; "
        "please choose one of them"
    )


class TooManyRollupNames(ConfigValidationError):
    code = "too_many_rollup_names"
    message = f"max of {APP_NAME_LIMIT} rollup application names"


def _check_license(config: AgentConfig) -> ConfigValidationError | None:
    if len(config.license) == LICENSE_LENGTH:
        return None
    # An agent that never connects may leave the license empty.
    if not config.enabled and config.license == "":
        return None
    return CredentialLengthInvalid()


def _check_app_name(config: AgentConfig) -> ConfigValidationError | None:
    if config.enabled and config.app_name == "":
        return ApplicationNameRequired()
    return None


def _check_security_policies(config: AgentConfig) -> ConfigValidationError | None:
    if config.high_security and config.security_policies_token != "":
        return SecurityPolicyConflict()
    return None


def _check_tracers(config: AgentConfig) -> ConfigValidationError | None:
    if config.cross_application_tracer.enabled and config.distributed_tracer.enabled:
        return TracingStrategyConflict()
    return None


def _check_rollup_names(config: AgentConfig) -> ConfigValidationError | None:
    if config.app_name.count(ROLLUP_DELIMITER) >= APP_NAME_LIMIT:
        return TooManyRollupNames()
    return None


# Order is part of the contract: callers match on the first reported error.
_CHECKS: tuple[Callable[[AgentConfig], ConfigValidationError | None], ...] = (
    _check_license,
    _check_app_name,
    _check_security_policies,
    _check_tracers,
    _check_rollup_names,
)


@dataclass(slots=True)
class ValidationReport:
    violations: list[ConfigValidationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "violations": [{"code": item.code, "error": str(item)} for item in self.violations],
            "warnings": list(self.warnings),
        }


class ConfigValidator:
    def validate(self, config: AgentConfig) -> ConfigValidationError | None:
        for check in _CHECKS:
            error = check(config)
            if error is not None:
                return error
        return None

    def collect(self, config: AgentConfig) -> ValidationReport:
        """Run every check instead of stopping at the first failure.

        Warnings describe settings that are accepted but probably not what
        the caller meant; they never make the report fail.
        """
        violations: list[ConfigValidationError] = []
        for check in _CHECKS:
            error = check(config)
            if error is not None:
                violations.append(error)

        warnings: list[str] = []
        if not config.enabled:
            warnings.append("Agent is disabled; no data will be reported.")
        # Cross application tracing is the default strategy and needs no span events hint.
        if (
            config.span_events.enabled
            and not config.distributed_tracer.enabled
            and not config.cross_application_tracer.enabled
        ):
            warnings.append("Span events are enabled but require distributed tracing to be reported.")
        if config.high_security and config.custom_insights_events.enabled:
            warnings.append("High security mode overrides custom event recording.")
        return ValidationReport(violations=violations, warnings=warnings)

    def enforce(self, config: AgentConfig) -> AgentConfig:
        """Raise the first violation, or return a detached copy safe to share."""
        error = self.validate(config)
        if error is not None:
            raise error
        return copy.deepcopy(config)


def validate_config(config: AgentConfig) -> ConfigValidationError | None:
    return ConfigValidator().validate(config)
