"""
Smoke test for the benchmark CLI.
"""

from __future__ import annotations

from memo_encryption.benchmark import run_benchmark


async def test_runs_with_small_quantity(monkeypatch, capsys):
    monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
    monkeypatch.setattr("builtins.input", lambda prompt="": "3")

    await run_benchmark()

    out = capsys.readouterr().out
    assert "Testing with 3 fields" in out
    assert "Decrypted 3 fields, 2 substituted" in out
    assert "BENCHMARK COMPLETE" in out
