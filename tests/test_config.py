from pathlib import Path

import pytest

from ghost_librarian.config import DistillConfig, Settings, load_settings


def test_distill_config_defaults() -> None:
    config = DistillConfig()
    assert config.context_budget == 3000
    assert config.top_k == 20
    assert config.dedup_threshold == pytest.approx(0.85)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"context_budget": 0},
        {"top_k": -1},
        {"dedup_threshold": 0.0},
        {"dedup_threshold": 1.5},
    ],
)
def test_distill_config_rejects_invalid_values(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        DistillConfig(**kwargs)


def test_settings_paths_and_url(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path, ollama_host="http://gpu-box/", ollama_port=9999)
    assert settings.db_path == tmp_path / "library.db"
    assert settings.index_path == tmp_path / "indexes" / "library.faiss"
    assert settings.memory_store_dir == tmp_path / "memory"
    assert settings.ollama_url == "http://gpu-box:9999"


def test_settings_rejects_unknown_store() -> None:
    with pytest.raises(ValueError):
        Settings(store_backend="qdrant")


def test_settings_distill_config_budget_override() -> None:
    settings = Settings(context_budget=1500, top_k=7)
    assert settings.distill_config().context_budget == 1500
    config = settings.distill_config(400)
    assert config.context_budget == 400
    assert config.top_k == 7


def test_load_settings_reads_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GHOST_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("GHOST_STORE", "Memory")
    monkeypatch.setenv("GHOST_EMBEDDING_BACKEND", "hash")
    monkeypatch.setenv("GHOST_EMBED_DIM", "64")
    monkeypatch.setenv("GHOST_CONTEXT_BUDGET", "1200")
    monkeypatch.setenv("GHOST_TOP_K", "not-a-number")
    monkeypatch.setenv("GHOST_MODEL", "mistral")
    monkeypatch.setenv("GHOST_OLLAMA_PORT", "8080")

    settings = load_settings()

    assert settings.data_dir == tmp_path
    assert settings.store_backend == "memory"
    assert settings.embedding_backend == "hash"
    assert settings.embedding_dim == 64
    assert settings.context_budget == 1200
    assert settings.top_k == 20
    assert settings.ollama_model == "mistral"
    assert settings.ollama_url == "http://localhost:8080"


def test_settings_distill_config_rejects_zero_budget() -> None:
    with pytest.raises(ValueError):
        Settings().distill_config(0)
    with pytest.raises(ValueError):
        Settings().distill_config(-10)
