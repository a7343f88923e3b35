import logging
import ssl

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from atendimentos.config import Settings, to_async_url

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_ssl_context(ca_path: str) -> ssl.SSLContext:
    """Contexto TLS que confia apenas no bundle de CA informado (ex.: RDS)."""
    return ssl.create_default_context(cafile=ca_path)


def build_engine(url: URL | str, settings: Settings | None = None) -> AsyncEngine:
    """Cria o motor assíncrono com pool limitado; SQLite usa o pool padrão do dialeto."""
    settings = settings or Settings()
    url = url if isinstance(url, URL) else to_async_url(url)

    kwargs = {"echo": settings.db_echo}
    if url.get_backend_name() != "sqlite":
        # Pool fixo: quem passar do limite espera até pool_timeout
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=0,
            pool_timeout=settings.db_pool_timeout,
        )
        if settings.db_use_ssl:
            kwargs["connect_args"] = {"ssl": build_ssl_context(settings.db_ssl_ca)}

    logger.info("Criando motor para %s", url.render_as_string(hide_password=True))
    return create_async_engine(url, **kwargs)
