from pathlib import Path

from docchat.config import Settings, load_settings


def test_paths_derive_from_data_dir(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    settings = Settings(data_dir="store")
    assert Path(settings.upload_dir) == Path("store") / "uploads"
    assert Path(settings.documents_dir) == Path("store") / "documents"
    assert Path(settings.registry_path) == Path("store") / "documents.json"


def test_load_from_dotenv(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("LOG_LEVEL=DEBUG\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    assert Settings().log_level == "DEBUG"


def test_yaml_values_are_used(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DEFAULT_MODEL", raising=False)
    cfg = tmp_path / "config.yml"
    cfg.write_text("default_model: mistral\nollama_max_attempts: 5\n", encoding="utf-8")
    monkeypatch.setenv("CONFIG_PATH", str(cfg))
    settings = load_settings()
    assert settings.default_model == "mistral"
    assert settings.ollama_max_attempts == 5


def test_env_overrides_yaml(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = tmp_path / "config.yml"
    cfg.write_text("default_model: mistral\n", encoding="utf-8")
    monkeypatch.setenv("DEFAULT_MODEL", "phi3")
    assert load_settings(cfg).default_model == "phi3"


def test_missing_yaml_is_ignored(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DEFAULT_MODEL", raising=False)
    settings = load_settings(tmp_path / "absent.yml")
    assert settings.default_model == "llama3"


def test_dotenv_overrides_yaml(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DEFAULT_MODEL", raising=False)
    (tmp_path / ".env").write_text("DEFAULT_MODEL=from-env-file\n", encoding="utf-8")
    cfg = tmp_path / "config.yml"
    cfg.write_text("default_model: from-yaml\nollama_max_attempts: 4\n", encoding="utf-8")
    settings = load_settings(cfg)
    assert settings.default_model == "from-env-file"
    assert settings.ollama_max_attempts == 4
