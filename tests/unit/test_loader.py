from pathlib import Path

import pytest

from apmgate.config.loader import DEFAULT_CONFIG_PATH, apply_env_overrides, initialize_config, load_config
from apmgate.config.schema import build_default
from apmgate.config.validation import CredentialLengthInvalid, validate_config


LICENSE = "0123456789abcdef0123456789abcdef01234567"


def test_bundled_defaults_match_build_default() -> None:
    config = load_config(DEFAULT_CONFIG_PATH, environ={})
    assert config == build_default("my-service", "")


def test_bundled_defaults_need_a_license_to_validate() -> None:
    config = load_config(DEFAULT_CONFIG_PATH, environ={})
    assert isinstance(validate_config(config), CredentialLengthInvalid)
    licensed = load_config(DEFAULT_CONFIG_PATH, environ={"APMGATE_LICENSE_KEY": LICENSE})
    assert licensed.license == LICENSE
    assert validate_config(licensed) is None


def test_load_config_interpolates_environment(tmp_path: Path) -> None:
    path = tmp_path / "agent.yml"
    path.write_text(
        "app_name: ${SERVICE_NAME}\n"
        "license: ${LICENSE_KEY:-}\n"
        "labels:\n"
        "  region: ${REGION:-us-east}\n",
        encoding="utf-8",
    )
    config = load_config(path, environ={"SERVICE_NAME": "billing"})
    assert config.app_name == "billing"
    assert config.license == ""
    assert config.labels == {"region": "us-east"}


def test_load_config_requires_referenced_variables(tmp_path: Path) -> None:
    path = tmp_path / "agent.yml"
    path.write_text("license: ${LICENSE_KEY}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="LICENSE_KEY"):
        load_config(path, environ={})


def test_environment_overrides_take_precedence(tmp_path: Path) -> None:
    path = tmp_path / "agent.yml"
    path.write_text("app_name: from-file\nenabled: true\n", encoding="utf-8")
    config = load_config(
        path,
        environ={"APMGATE_APP_NAME": "from-env", "APMGATE_ENABLED": "false"},
    )
    assert config.app_name == "from-env"
    assert config.enabled is False


def test_apply_env_overrides_copies_input() -> None:
    raw = {"app_name": "a"}
    merged = apply_env_overrides(raw, {"APMGATE_SECURITY_POLICIES_TOKEN": "tok"})
    assert merged == {"app_name": "a", "security_policies_token": "tok"}
    assert raw == {"app_name": "a"}


def test_load_config_reads_os_environ_by_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "agent.yml"
    path.write_text("app_name: svc\n", encoding="utf-8")
    monkeypatch.setenv("APMGATE_LICENSE_KEY", LICENSE)
    assert load_config(path).license == LICENSE


def test_load_config_empty_file_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "agent.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path, environ={}) == build_default("", "")


def test_load_config_rejects_non_mapping_document(tmp_path: Path) -> None:
    path = tmp_path / "agent.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path, environ={})


def test_load_config_rejects_numeric_license_scalar(tmp_path: Path) -> None:
    digits = "0123456712345671234567123456712345671234"
    path = tmp_path / "agent.yml"
    path.write_text(f"app_name: svc\nlicense: {digits}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="'license' must be a string"):
        load_config(path, environ={})

    path.write_text(f"app_name: svc\nlicense: \"{digits}\"\n", encoding="utf-8")
    config = load_config(path, environ={})
    assert config.license == digits
    assert validate_config(config) is None


def test_load_config_rejects_numeric_app_name(tmp_path: Path) -> None:
    path = tmp_path / "agent.yml"
    path.write_text(f"app_name: 0\nlicense: \"{LICENSE}\"\n", encoding="utf-8")
    with pytest.raises(ValueError, match="'app_name' must be a string"):
        load_config(path, environ={})


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yml")


def test_initialize_config_refuses_to_overwrite(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "agent.yml"
    assert initialize_config(path) == path
    assert path.read_text(encoding="utf-8") == DEFAULT_CONFIG_PATH.read_text(encoding="utf-8")
    with pytest.raises(FileExistsError):
        initialize_config(path)
    path.write_text("app_name: changed\n", encoding="utf-8")
    initialize_config(path, force=True)
    assert "app_name: changed" not in path.read_text(encoding="utf-8")
