"""Configuração do pytest: pacote importável sem instalação e app apontando para SQLite temporário."""
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Garante a raiz do repositório no sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from atendimentos.config import Settings
from atendimentos.main import create_app


@pytest.fixture
def make_settings(tmp_path: Path):
    """Fábrica de Settings com banco SQLite isolado por teste."""

    def _make(**overrides) -> Settings:
        values = {
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'atendimentos.db'}",
            "secrets_file": str(tmp_path / "inexistente.toml"),
            "rate_limit_max": 1000,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def valid_payload() -> dict:
    return {
        "name": "Jo Silva",
        "email": "jo@example.com",
        "phone": "(11) 98888-7777",
        "serviceDescription": "Instalação elétrica completa",
    }
