from __future__ import annotations

import json
import os

import pytest
from fakes import FakeIncrementalSource, make_page, make_tickets

from support_pulse import cli
from support_pulse.sync import orchestrator as orchestrator_module


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    monkeypatch.setenv("DISABLE_DOTENV", "1")
    monkeypatch.delenv("REDIS_URL", raising=False)
    for name in ("ZENDESK_DOMAIN", "ZENDESK_EMAIL", "ZENDESK_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_uri(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def test_sync_then_tickets(monkeypatch, capsys, db_uri):
    source = FakeIncrementalSource([make_page(make_tickets(1, 2), end_time=1_700_000_100)])
    monkeypatch.setattr(
        orchestrator_module,
        "_default_client_factory",
        lambda timeout: (lambda domain, credentials: source),
    )
    monkeypatch.setenv("ZENDESK_EMAIL", "ops@acme.test")
    monkeypatch.setenv("ZENDESK_TOKEN", "tok")

    code = cli.main(
        [
            "--db",
            db_uri,
            "sync",
            "--instance-id",
            "acme",
            "--domain",
            "acme.zendesk.com",
            "--start-time",
            "1700000000",
        ]
    )

    assert code == 0
    synced = json.loads(capsys.readouterr().out)
    assert synced["synced_count"] == 2
    assert synced["state"] == "done"
    assert source.calls == [1_700_000_000]

    code = cli.main(["--db", db_uri, "tickets", "--instance-id", "acme", "--summary"])

    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["total"] == 2


def test_sync_requires_domain(db_uri):
    with pytest.raises(SystemExit):
        cli.main(
            ["--db", db_uri, "sync", "--instance-id", "acme", "--email", "a@b.c", "--token", "t"]
        )


def test_tickets_empty_mirror(capsys, db_uri):
    assert cli.main(["--db", db_uri, "tickets", "--instance-id", "nobody"]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_load_dotenv_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nexport SP_TEST_A='quoted'\nSP_TEST_B=keep\nnot a pair\n",
        encoding="utf-8",
    )
    monkeypatch.delenv("SP_TEST_A", raising=False)
    monkeypatch.setenv("SP_TEST_B", "existing")

    loaded = cli._load_dotenv(env_file)

    assert loaded == 1
    assert os.environ["SP_TEST_A"] == "quoted"
    assert os.environ["SP_TEST_B"] == "existing"
    monkeypatch.delenv("SP_TEST_A")
