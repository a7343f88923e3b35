import logging
import os
import tomllib

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

logger = logging.getLogger(__name__)

# Drivers assíncronos usados para cada banco suportado
ASYNC_DRIVERS = {
    "mysql": "mysql+aiomysql",
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}

DEFAULT_PORTS = {"mysql": 3306, "postgresql": 5432}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "atendimentos"

    # Banco de dados
    database_url: str | None = None
    secrets_file: str = ".streamlit/secrets.toml"
    db_engine: str = "mysql"
    db_host: str | None = None
    db_user: str | None = None
    db_password: str | None = None
    db_database: str | None = None
    db_port: int | None = None
    db_use_ssl: bool = False
    db_ssl_ca: str = "rds-combined-ca-bundle.pem"
    db_pool_size: int = 10
    db_pool_timeout: float = 30.0
    db_echo: bool = False
    email_unique: bool = False

    # Servidor HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["*"]
    rate_limit_max: int = 100
    rate_limit_window: int = 15 * 60
    trust_proxy: bool = True
    max_body_bytes: int = 10 * 1024

    log_level: str = "INFO"


def read_secrets_url(path: str) -> str | None:
    """Lê a URL do banco no arquivo TOML de segredos (seção [database])."""
    try:
        with open(path, "rb") as f:
            secrets = tomllib.load(f)
    except FileNotFoundError:
        return None
    return secrets.get("database", {}).get("url")


def to_async_url(url: str) -> URL:
    """Troca o driver síncrono da URL pelo driver assíncrono equivalente."""
    parsed = make_url(url)
    backend = parsed.get_backend_name()
    if backend not in ASYNC_DRIVERS:
        raise ValueError(f"Banco de dados não suportado: {backend}")
    if "+" not in parsed.drivername:
        parsed = parsed.set(drivername=ASYNC_DRIVERS[backend])
    return parsed


def get_database_url(settings: Settings) -> URL:
    """Resolve a URL do banco: DATABASE_URL, depois o arquivo de segredos, depois as variáveis DB_*."""
    if settings.database_url:
        return to_async_url(settings.database_url)

    secrets_url = read_secrets_url(settings.secrets_file)
    if secrets_url:
        return to_async_url(secrets_url)

    engine = settings.db_engine.lower()
    if engine not in ASYNC_DRIVERS:
        raise ValueError(f"Banco de dados não suportado: {settings.db_engine}")

    if engine == "sqlite":
        return URL.create(ASYNC_DRIVERS["sqlite"], database=settings.db_database or "atendimentos.db")

    if not all([settings.db_host, settings.db_user, settings.db_password, settings.db_database]):
        logger.warning("Variáveis de ambiente do banco de dados não estão definidas corretamente.")

    backend = "postgresql" if engine == "postgres" else engine
    return URL.create(
        ASYNC_DRIVERS[backend],
        username=settings.db_user,
        password=settings.db_password,
        host=settings.db_host,
        port=settings.db_port or DEFAULT_PORTS[backend],
        database=settings.db_database,
    )


def configure_logging(level: str | None = None) -> None:
    """Inicializa o logging com formato comum; o nível vem do argumento ou de LOG_LEVEL."""
    resolved_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
