"""Settings schema and layered resolution."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from chainplan import ConfigurationError, ExecutionPlan, Settings, resolve_settings
from chainplan.config import load_env, load_pyproject

pytestmark = pytest.mark.unit


def _write_pyproject(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    return path


class TestSettings:
    @pytest.mark.smoke
    def test_defaults(self):
        settings = Settings()
        assert settings.validate_links is False
        assert settings.telemetry_enabled is False

    def test_is_frozen(self):
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.validate_links = True  # type: ignore[misc]

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Settings(unknown=True)  # type: ignore[call-arg]


class TestLoaders:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1", True), ("true", True), ("YES", True), ("on", True), ("0", False), ("no", False)],
    )
    def test_env_bool_coercion(self, monkeypatch, raw, expected):
        monkeypatch.setenv("CHAINPLAN_VALIDATE_LINKS", raw)
        assert load_env()["validate_links"] is expected

    def test_env_skips_meta_variables(self, monkeypatch):
        monkeypatch.setenv("CHAINPLAN_TELEMETRY", "1")
        assert load_env() == {}

    def test_missing_pyproject_is_empty(self, tmp_path):
        assert load_pyproject(tmp_path / "nope.toml") == {}

    def test_reads_tool_table(self, tmp_path):
        path = _write_pyproject(
            tmp_path / "pyproject.toml",
            "[tool.chainplan]\nvalidate_links = true\n",
        )
        assert load_pyproject(path) == {"validate_links": True}

    def test_invalid_toml_is_a_configuration_error(self, tmp_path):
        path = _write_pyproject(tmp_path / "pyproject.toml", "[tool.chainplan\n")
        with pytest.raises(ConfigurationError):
            load_pyproject(path)


class TestResolveSettings:
    def test_defaults_without_sources(self):
        assert resolve_settings() == Settings()

    def test_precedence_project_env_overrides(self, monkeypatch, tmp_path):
        path = _write_pyproject(
            tmp_path / "pyproject.toml",
            "[tool.chainplan]\nvalidate_links = true\ntelemetry_enabled = true\n",
        )
        monkeypatch.setenv("CHAINPLAN_PYPROJECT_PATH", str(path))
        assert resolve_settings().validate_links is True

        monkeypatch.setenv("CHAINPLAN_VALIDATE_LINKS", "0")
        resolved = resolve_settings()
        assert resolved.validate_links is False
        assert resolved.telemetry_enabled is True

        assert resolve_settings({"validate_links": True}).validate_links is True

    def test_invalid_values_raise_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc:
            resolve_settings({"validate_links": "definitely"})
        assert "validate_links" in str(exc.value)
        assert exc.value.hint is not None

    def test_unknown_env_key_is_rejected(self, monkeypatch):
        monkeypatch.setenv("CHAINPLAN_NOT_A_SETTING", "1")
        with pytest.raises(ConfigurationError):
            resolve_settings()

    def test_plan_resolves_settings_when_omitted(self, monkeypatch):
        monkeypatch.setenv("CHAINPLAN_VALIDATE_LINKS", "true")
        assert ExecutionPlan().settings.validate_links is True
