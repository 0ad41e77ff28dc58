from pizarro.config import Settings


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PIZARRO_TOP_N", "5")
    monkeypatch.setenv("PIZARRO_DEBOUNCE_MS", "250")
    monkeypatch.setenv("PIZARRO_CORS_ORIGINS", "http://a.test, http://b.test,")
    s = Settings(_env_file=None)
    assert s.TOP_N == 5
    assert s.debounce_seconds == 0.25
    assert s.cors_origins == ["http://a.test", "http://b.test"]


def test_negative_debounce_runs_immediately(monkeypatch):
    monkeypatch.setenv("PIZARRO_DEBOUNCE_MS", "-10")
    assert Settings(_env_file=None).debounce_seconds == 0
