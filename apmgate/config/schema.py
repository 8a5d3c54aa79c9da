"""Dataclasses for the agent configuration tree."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


DEFAULT_IGNORE_STATUS_CODES = [404]
APDEX_FAILING_MULTIPLIER = 4.0


@dataclass(slots=True)
class AttributeFilterConfig:
    enabled: bool = True
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CustomEventsConfig:
    enabled: bool = True


@dataclass(slots=True)
class TransactionEventsConfig:
    enabled: bool = True
    attributes: AttributeFilterConfig = field(default_factory=AttributeFilterConfig)


@dataclass(slots=True)
class ErrorCollectorConfig:
    enabled: bool = True
    capture_events: bool = True
    ignore_status_codes: list[int] = field(default_factory=lambda: list(DEFAULT_IGNORE_STATUS_CODES))
    attributes: AttributeFilterConfig = field(default_factory=AttributeFilterConfig)


@dataclass(slots=True)
class TraceThresholdConfig:
    is_apdex_failing: bool = True
    duration_seconds: float = 0.5

    def effective_seconds(self, apdex_t: float) -> float:
        """Return the trace threshold for an apdex target of ``apdex_t`` seconds."""
        if self.is_apdex_failing:
            return APDEX_FAILING_MULTIPLIER * apdex_t
        return self.duration_seconds


@dataclass(slots=True)
class TransactionTracerConfig:
    enabled: bool = True
    threshold: TraceThresholdConfig = field(default_factory=TraceThresholdConfig)
    # Lower values capture more segments at the cost of overhead.
    segment_threshold_seconds: float = 0.002
    # Stack capture is expensive.
    stack_trace_threshold_seconds: float = 0.5
    attributes: AttributeFilterConfig = field(default_factory=AttributeFilterConfig)


@dataclass(slots=True)
class UtilizationConfig:
    detect_aws: bool = True
    detect_azure: bool = True
    detect_pcf: bool = True
    detect_gcp: bool = True
    detect_docker: bool = True
    detect_kubernetes: bool = True
    logical_processors: int = 0
    total_ram_mib: int = 0
    billing_hostname: str = ""


@dataclass(slots=True)
class CrossApplicationTracerConfig:
    enabled: bool = True


@dataclass(slots=True)
class DistributedTracerConfig:
    enabled: bool = False


@dataclass(slots=True)
class SpanEventsConfig:
    enabled: bool = True


@dataclass(slots=True)
class SlowQueryConfig:
    enabled: bool = True
    threshold_seconds: float = 0.01


@dataclass(slots=True)
class DatastoreTracerConfig:
    instance_reporting: bool = True
    database_name_reporting: bool = True
    query_parameters: bool = True
    slow_query: SlowQueryConfig = field(default_factory=SlowQueryConfig)


@dataclass(slots=True)
class RuntimeSamplerConfig:
    enabled: bool = True


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: str = "ecs_json"
    sink: str = "stdout"
    file_path: str | None = None
    service_name: str = "apmgate"


@dataclass(slots=True)
class AgentConfig:
    app_name: str
    license: str
    enabled: bool = True
    labels: dict[str, str] = field(default_factory=dict)
    high_security: bool = False
    security_policies_token: str = ""
    host_display_name: str = ""
    custom_insights_events: CustomEventsConfig = field(default_factory=CustomEventsConfig)
    transaction_events: TransactionEventsConfig = field(default_factory=TransactionEventsConfig)
    error_collector: ErrorCollectorConfig = field(default_factory=ErrorCollectorConfig)
    transaction_tracer: TransactionTracerConfig = field(default_factory=TransactionTracerConfig)
    utilization: UtilizationConfig = field(default_factory=UtilizationConfig)
    cross_application_tracer: CrossApplicationTracerConfig = field(default_factory=CrossApplicationTracerConfig)
    distributed_tracer: DistributedTracerConfig = field(default_factory=DistributedTracerConfig)
    span_events: SpanEventsConfig = field(default_factory=SpanEventsConfig)
    datastore_tracer: DatastoreTracerConfig = field(default_factory=DatastoreTracerConfig)
    attributes: AttributeFilterConfig = field(default_factory=AttributeFilterConfig)
    runtime_sampler: RuntimeSamplerConfig = field(default_factory=RuntimeSamplerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
VALID_LOG_FORMATS = {"json", "ecs_json"}
VALID_LOG_SINKS = {"stdout", "file"}


def build_default(app_name: str, license: str) -> AgentConfig:
    """Build a fully populated config.

    Nothing is checked here; pass the result through
    ``apmgate.config.validation.validate_config`` before handing it to the agent.
    Distributed tracing starts disabled because cross application tracing,
    which it excludes, starts enabled.
    """
    return AgentConfig(app_name=app_name, license=license)


def config_to_dict(config: AgentConfig) -> dict[str, Any]:
    """Plain-dict form of ``config`` in the shape ``parse_config`` reads."""
    payload = asdict(config)
    payload["logging"]["format"] = payload["logging"].pop("fmt")
    return payload


def _section(raw: Any, *, field_name: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{field_name}' must be an object")
    return raw


def _parse_bool_value(raw: Any, *, field_name: str, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in {0, 1}:
        return bool(raw)
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"'{field_name}' must be a boolean")


def _parse_string(raw: Any, *, field_name: str) -> str:
    # YAML reads unquoted digits as numbers; converting them back can change the value.
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise ValueError(f"'{field_name}' must be a string")
    return raw


def _parse_seconds(raw: Any, *, field_name: str, default: float) -> float:
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise ValueError(f"'{field_name}' must be a number of seconds")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{field_name}' must be a number of seconds") from exc
    if value < 0:
        raise ValueError(f"'{field_name}' must not be negative")
    return value


def _parse_non_negative_int(raw: Any, *, field_name: str, default: int) -> int:
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"'{field_name}' must be an integer")
    if raw < 0:
        raise ValueError(f"'{field_name}' must not be negative")
    return raw


def _parse_pattern_list(raw: Any, *, field_name: str) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"'{field_name}' must be a list")
    values: list[str] = []
    for item in raw:
        pattern = str(item).strip()
        if not pattern:
            continue
        if " " in pattern:
            raise ValueError(f"'{field_name}' entries must not include spaces")
        values.append(pattern)
    return values


def _parse_status_codes(raw: Any, *, field_name: str) -> list[int]:
    if raw is None:
        return list(DEFAULT_IGNORE_STATUS_CODES)
    if not isinstance(raw, list):
        raise ValueError(f"'{field_name}' must be a list")
    codes: list[int] = []
    for item in raw:
        if isinstance(item, bool) or not isinstance(item, int) or not 100 <= item <= 599:
            raise ValueError(f"'{field_name}' entries must be HTTP status codes")
        if item not in codes:
            codes.append(item)
    return codes


def _parse_labels(raw: Any) -> dict[str, str]:
    labels_raw = _section(raw, field_name="labels")
    labels: dict[str, str] = {}
    for key, value in labels_raw.items():
        name = str(key).strip()
        if not name:
            raise ValueError("'labels' keys must be non-empty")
        labels[name] = str(value)
    return labels


def _parse_attribute_filter(raw: Any, *, field_name: str) -> AttributeFilterConfig:
    filter_raw = _section(raw, field_name=field_name)
    return AttributeFilterConfig(
        enabled=_parse_bool_value(
            filter_raw.get("enabled"),
            field_name=f"{field_name}.enabled",
            default=True,
        ),
        include=_parse_pattern_list(filter_raw.get("include"), field_name=f"{field_name}.include"),
        exclude=_parse_pattern_list(filter_raw.get("exclude"), field_name=f"{field_name}.exclude"),
    )


def _parse_toggle(raw: Any, *, field_name: str, default: bool) -> bool:
    # Toggle groups accept the short form ``span_events: false``.
    if isinstance(raw, (bool, str)):
        return _parse_bool_value(raw, field_name=field_name, default=default)
    section = _section(raw, field_name=field_name)
    return _parse_bool_value(section.get("enabled"), field_name=f"{field_name}.enabled", default=default)


def _parse_transaction_tracer(raw: Any) -> TransactionTracerConfig:
    tracer_raw = _section(raw, field_name="transaction_tracer")
    defaults = TransactionTracerConfig()
    threshold_raw = _section(tracer_raw.get("threshold"), field_name="transaction_tracer.threshold")
    threshold = TraceThresholdConfig(
        is_apdex_failing=_parse_bool_value(
            threshold_raw.get("is_apdex_failing"),
            field_name="transaction_tracer.threshold.is_apdex_failing",
            default=defaults.threshold.is_apdex_failing,
        ),
        duration_seconds=_parse_seconds(
            threshold_raw.get("duration_seconds"),
            field_name="transaction_tracer.threshold.duration_seconds",
            default=defaults.threshold.duration_seconds,
        ),
    )
    return TransactionTracerConfig(
        enabled=_parse_bool_value(
            tracer_raw.get("enabled"),
            field_name="transaction_tracer.enabled",
            default=defaults.enabled,
        ),
        threshold=threshold,
        segment_threshold_seconds=_parse_seconds(
            tracer_raw.get("segment_threshold_seconds"),
            field_name="transaction_tracer.segment_threshold_seconds",
            default=defaults.segment_threshold_seconds,
        ),
        stack_trace_threshold_seconds=_parse_seconds(
            tracer_raw.get("stack_trace_threshold_seconds"),
            field_name="transaction_tracer.stack_trace_threshold_seconds",
            default=defaults.stack_trace_threshold_seconds,
        ),
        attributes=_parse_attribute_filter(
            tracer_raw.get("attributes"),
            field_name="transaction_tracer.attributes",
        ),
    )


def _parse_utilization(raw: Any) -> UtilizationConfig:
    utilization_raw = _section(raw, field_name="utilization")
    detect: dict[str, bool] = {}
    for provider in ("aws", "azure", "pcf", "gcp", "docker", "kubernetes"):
        key = f"detect_{provider}"
        detect[key] = _parse_bool_value(
            utilization_raw.get(key),
            field_name=f"utilization.{key}",
            default=True,
        )
    return UtilizationConfig(
        **detect,
        logical_processors=_parse_non_negative_int(
            utilization_raw.get("logical_processors"),
            field_name="utilization.logical_processors",
            default=0,
        ),
        total_ram_mib=_parse_non_negative_int(
            utilization_raw.get("total_ram_mib"),
            field_name="utilization.total_ram_mib",
            default=0,
        ),
        billing_hostname=str(utilization_raw.get("billing_hostname", "") or "").strip(),
    )


def _parse_datastore_tracer(raw: Any) -> DatastoreTracerConfig:
    datastore_raw = _section(raw, field_name="datastore_tracer")
    slow_query_raw = _section(datastore_raw.get("slow_query"), field_name="datastore_tracer.slow_query")
    slow_query = SlowQueryConfig(
        enabled=_parse_bool_value(
            slow_query_raw.get("enabled"),
            field_name="datastore_tracer.slow_query.enabled",
            default=True,
        ),
        threshold_seconds=_parse_seconds(
            slow_query_raw.get("threshold_seconds"),
            field_name="datastore_tracer.slow_query.threshold_seconds",
            default=SlowQueryConfig().threshold_seconds,
        ),
    )
    return DatastoreTracerConfig(
        instance_reporting=_parse_toggle(
            datastore_raw.get("instance_reporting"),
            field_name="datastore_tracer.instance_reporting",
            default=True,
        ),
        database_name_reporting=_parse_toggle(
            datastore_raw.get("database_name_reporting"),
            field_name="datastore_tracer.database_name_reporting",
            default=True,
        ),
        query_parameters=_parse_toggle(
            datastore_raw.get("query_parameters"),
            field_name="datastore_tracer.query_parameters",
            default=True,
        ),
        slow_query=slow_query,
    )


def _parse_logging(raw: Any) -> LoggingConfig:
    logging_raw = _section(raw, field_name="logging")
    level = str(logging_raw.get("level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"invalid log level '{level}'")
    log_format = str(logging_raw.get("format", "ecs_json"))
    if log_format not in VALID_LOG_FORMATS:
        raise ValueError(f"invalid log format '{log_format}'")
    sink = str(logging_raw.get("sink", "stdout"))
    if sink not in VALID_LOG_SINKS:
        raise ValueError(f"invalid log sink '{sink}'")
    file_path = logging_raw.get("file_path")
    return LoggingConfig(
        level=level,
        fmt=log_format,
        sink=sink,
        file_path=str(file_path) if file_path else None,
        service_name=str(logging_raw.get("service_name", "apmgate")).strip() or "apmgate",
    )


def parse_config(data: dict[str, Any]) -> AgentConfig:
    """Overlay a raw mapping on the defaults.

    Only structural problems raise ``ValueError`` here. Cross-field rules
    such as the tracer exclusion are left to the validator so that a
    hand-edited file and a mutated object are judged the same way.
    """
    if not isinstance(data, dict):
        raise ValueError("config root must be an object")

    config = build_default(
        _parse_string(data.get("app_name"), field_name="app_name"),
        _parse_string(data.get("license"), field_name="license"),
    )
    config.enabled = _parse_bool_value(data.get("enabled"), field_name="enabled", default=True)
    config.labels = _parse_labels(data.get("labels"))
    config.high_security = _parse_bool_value(
        data.get("high_security"),
        field_name="high_security",
        default=False,
    )
    # Whitespace still counts as a token when checked against high_security.
    config.security_policies_token = _parse_string(
        data.get("security_policies_token"),
        field_name="security_policies_token",
    )
    config.host_display_name = str(data.get("host_display_name", "") or "").strip()

    config.custom_insights_events = CustomEventsConfig(
        enabled=_parse_toggle(
            data.get("custom_insights_events"),
            field_name="custom_insights_events",
            default=True,
        )
    )

    transaction_events_raw = _section(data.get("transaction_events"), field_name="transaction_events")
    config.transaction_events = TransactionEventsConfig(
        enabled=_parse_bool_value(
            transaction_events_raw.get("enabled"),
            field_name="transaction_events.enabled",
            default=True,
        ),
        attributes=_parse_attribute_filter(
            transaction_events_raw.get("attributes"),
            field_name="transaction_events.attributes",
        ),
    )

    error_collector_raw = _section(data.get("error_collector"), field_name="error_collector")
    config.error_collector = ErrorCollectorConfig(
        enabled=_parse_bool_value(
            error_collector_raw.get("enabled"),
            field_name="error_collector.enabled",
            default=True,
        ),
        capture_events=_parse_bool_value(
            error_collector_raw.get("capture_events"),
            field_name="error_collector.capture_events",
            default=True,
        ),
        ignore_status_codes=_parse_status_codes(
            error_collector_raw.get("ignore_status_codes"),
            field_name="error_collector.ignore_status_codes",
        ),
        attributes=_parse_attribute_filter(
            error_collector_raw.get("attributes"),
            field_name="error_collector.attributes",
        ),
    )

    config.transaction_tracer = _parse_transaction_tracer(data.get("transaction_tracer"))
    config.utilization = _parse_utilization(data.get("utilization"))
    config.cross_application_tracer = CrossApplicationTracerConfig(
        enabled=_parse_toggle(
            data.get("cross_application_tracer"),
            field_name="cross_application_tracer",
            default=True,
        )
    )
    config.distributed_tracer = DistributedTracerConfig(
        enabled=_parse_toggle(
            data.get("distributed_tracer"),
            field_name="distributed_tracer",
            default=False,
        )
    )
    config.span_events = SpanEventsConfig(
        enabled=_parse_toggle(data.get("span_events"), field_name="span_events", default=True)
    )
    config.datastore_tracer = _parse_datastore_tracer(data.get("datastore_tracer"))
    config.attributes = _parse_attribute_filter(data.get("attributes"), field_name="attributes")
    config.runtime_sampler = RuntimeSamplerConfig(
        enabled=_parse_toggle(data.get("runtime_sampler"), field_name="runtime_sampler", default=True)
    )
    config.logging = _parse_logging(data.get("logging"))
    return config
