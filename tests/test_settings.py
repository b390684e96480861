"""Environment-driven settings."""
from __future__ import annotations

from kinfer.settings.config import Settings


def test_database_url_reads_either_variable(monkeypatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("KINFER_DATABASE_URL", "postgresql://kin@db/kinfer")
    assert Settings(_env_file=None).DATABASE_URL == "postgresql://kin@db/kinfer"

    monkeypatch.setenv("DATABASE_URL", "postgresql://kin@primary/kinfer")
    assert Settings(_env_file=None).DATABASE_URL == "postgresql://kin@primary/kinfer"


def test_inference_defaults(monkeypatch) -> None:
    for name in ("INFERENCE_MAX_TIER", "INFERENCE_WORKERS", "INFERENCE_QUEUE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert (s.INFERENCE_MAX_TIER, s.INFERENCE_WORKERS, s.INFERENCE_QUEUE_SIZE) == (3, 1, 1000)
