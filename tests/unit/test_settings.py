import pytest
from pydantic import ValidationError

from study_extract.config import DispatchConfig, load_settings
from study_extract.errors import ConfigurationError


def test_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("STUDY_EXTRACT_ENV", "STUDY_EXTRACT_PRODUCTION_URL", "STUDY_EXTRACT_MODEL"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert not settings.endpoints.is_local
    assert settings.endpoints.production_url is None
    assert settings.dispatch.retries_per_endpoint == 2
    assert settings.orchestrator.coverage.threshold == 50.0
    assert settings.orchestrator.chunking.max_chars == 8000
    assert settings.routing.default_model == ""


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STUDY_EXTRACT_ENV", "development")
    monkeypatch.setenv("STUDY_EXTRACT_PRODUCTION_URL", "https://prod.example.com/api/chat")
    monkeypatch.setenv("STUDY_EXTRACT_MODEL", "base-model")
    monkeypatch.setenv("STUDY_EXTRACT_MODEL_FLASHCARDS", "cards-model")
    monkeypatch.setenv("STUDY_EXTRACT_RETRIES", "3")
    monkeypatch.setenv("STUDY_EXTRACT_COVERAGE_THRESHOLD", "40")

    settings = load_settings()

    assert settings.endpoints.is_local
    assert settings.endpoints.production_url == "https://prod.example.com/api/chat"
    assert settings.routing.default_model == "base-model"
    assert settings.routing.task_models == {"flashcards": "cards-model"}
    assert settings.dispatch.retries_per_endpoint == 3
    assert settings.orchestrator.coverage.threshold == 40.0


def test_retry_bounds_are_validated() -> None:
    with pytest.raises(ValidationError):
        DispatchConfig(retries_per_endpoint=0)
    with pytest.raises(ValidationError):
        DispatchConfig(retries_per_endpoint=6)


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("STUDY_EXTRACT_RETRIES", "two"),
        ("STUDY_EXTRACT_TIMEOUT", "30s"),
        ("STUDY_EXTRACT_COVERAGE_THRESHOLD", "half"),
    ],
)
def test_malformed_numbers_name_the_variable(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError) as excinfo:
        load_settings()

    assert name in str(excinfo.value)
    assert excinfo.value.code == "CONFIG"


def test_blank_number_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STUDY_EXTRACT_RETRIES", "  ")

    assert load_settings().dispatch.retries_per_endpoint == 2
