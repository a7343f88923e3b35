import logging
from typing import List

from sqlalchemy import inspect, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from atendimentos.config import Settings, get_database_url
from atendimentos.database import Base, build_engine
from atendimentos.models import Atendimento

logger = logging.getLogger(__name__)

EMAIL_INDEX_NAME = "uq_atendimentos_email"


class StoreError(Exception):
    """Falha genérica do banco; vira 500 na API."""


class StoreUnavailableError(StoreError):
    """Banco inacessível na inicialização."""


class ConflictError(StoreError):
    """Restrição violada pelo insert (ex.: e-mail duplicado)."""


def _criar_indice_email(sync_conn) -> None:
    existentes = {ix["name"] for ix in inspect(sync_conn).get_indexes(Atendimento.__tablename__)}
    if EMAIL_INDEX_NAME not in existentes:
        sync_conn.execute(
            text(f"CREATE UNIQUE INDEX {EMAIL_INDEX_NAME} ON {Atendimento.__tablename__} (email)")
        )


class AtendimentoStore:
    """Acesso ao banco de atendimentos, igual para MySQL, SQLite e PostgreSQL.

    O motor (e o pool de conexões) é criado aqui e liberado em ``fechar``.
    Nenhuma operação faz retry: qualquer falha sobe como ``StoreError``.
    """

    def __init__(self, engine: AsyncEngine, email_unico: bool = False):
        self.engine = engine
        self.email_unico = email_unico
        self.sessions = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AtendimentoStore":
        return cls(build_engine(get_database_url(settings), settings), email_unico=settings.email_unique)

    async def verificar_conexao(self) -> None:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Erro ao conectar no banco: {e}") from e
        logger.info("Conexão com o banco de dados estabelecida com sucesso!")

    async def versao(self) -> str:
        async with self.engine.connect() as conn:
            info = conn.dialect.server_version_info or ()
            return f"{conn.dialect.name} {'.'.join(str(p) for p in info)}".strip()

    async def criar_schema(self) -> None:
        """Cria a tabela (e o índice único de e-mail, se ativado) caso não existam."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            if self.email_unico:
                await conn.run_sync(_criar_indice_email)
        logger.info("Tabela %s verificada.", Atendimento.__tablename__)

    async def inserir(self, dados: dict) -> Atendimento:
        # Sem data, o banco preenche com CURRENT_DATE
        if dados.get("service_date") is None:
            dados = {k: v for k, v in dados.items() if k != "service_date"}
        novo = Atendimento(**dados)

        async with self.sessions() as session:
            session.add(novo)
            try:
                await session.commit()
                await session.refresh(novo)  # pega o ID gerado e a data efetiva
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(str(e.orig)) from e
            except (SQLAlchemyError, OSError) as e:
                await session.rollback()
                raise StoreError(str(e)) from e
        return novo

    async def listar(self) -> List[Atendimento]:
        stmt = select(Atendimento).order_by(Atendimento.id)
        try:
            async with self.sessions() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(str(e)) from e

    async def fechar(self) -> None:
        await self.engine.dispose()
        logger.info("Pool de conexões encerrado.")
