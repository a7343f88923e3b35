import sys

import pytest

from atendimentos import cli


@pytest.fixture(autouse=True)
def _restore_excepthook(monkeypatch: pytest.MonkeyPatch) -> None:
    """main() instala um excepthook global; devolve o original ao fim do teste."""

    monkeypatch.setattr(sys, "excepthook", sys.excepthook)


def test_check_db_succeeds_on_sqlite(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")

    assert cli.main(["check-db"]) == 0
    assert "Conectado ao: sqlite" in capsys.readouterr().out


def test_check_db_fails_on_unreachable_store(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'sem' / 'pasta' / 'cli.db'}")

    assert cli.main(["check-db"]) == 1
    assert "Falha na conexão" in capsys.readouterr().out


def test_serve_is_default_command(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    chamadas = []
    monkeypatch.setattr(cli, "serve", lambda settings: chamadas.append(settings.port))

    assert cli.main([]) == 0
    assert chamadas == [3000]


def test_startup_errors_exit_with_status_1(monkeypatch):
    def falha(settings):
        raise RuntimeError("porta ocupada")

    monkeypatch.setattr(cli, "serve", falha)

    assert cli.main(["serve"]) == 1


def test_keyboard_interrupt_is_not_logged_as_fatal(monkeypatch, caplog):
    padrao = []
    monkeypatch.setattr(sys, "__excepthook__", lambda *exc_info: padrao.append(exc_info[0]))
    caplog.set_level("CRITICAL")

    cli._log_excecao_fatal(KeyboardInterrupt, KeyboardInterrupt(), None)
    cli._log_excecao_fatal(RuntimeError, RuntimeError("boom"), None)

    assert padrao == [KeyboardInterrupt]
    assert [r.getMessage() for r in caplog.records] == ["Erro inesperado"]
