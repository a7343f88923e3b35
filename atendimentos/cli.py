"""Linha de comando: sobe o servidor ou testa a conexão com o banco."""
import argparse
import asyncio
import logging
import sys

import uvicorn

from atendimentos.config import Settings, configure_logging
from atendimentos.store import AtendimentoStore, StoreError

logger = logging.getLogger(__name__)


def _log_excecao_fatal(exc_type, exc, tb) -> None:
    # Ctrl+C não é erro: segue o comportamento padrão do interpretador
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("Erro inesperado", exc_info=(exc_type, exc, tb))


async def verificar(settings: Settings) -> bool:
    store = AtendimentoStore.from_settings(settings)
    try:
        await store.verificar_conexao()
        print(f"Conectado ao: {await store.versao()}")
        return True
    except StoreError as e:
        print(f"Falha na conexão. Verifique a URL e a senha.\nErro técnico: {e}")
        return False
    finally:
        await store.fechar()


def serve(settings: Settings) -> None:
    uvicorn.run(
        "atendimentos.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        proxy_headers=settings.trust_proxy,
        log_config=None,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atendimentos", description=__doc__)
    parser.add_argument("comando", nargs="?", choices=["serve", "check-db"], default="serve")
    parser.add_argument("--log-level", default=None, help="Nível de log (padrão: LOG_LEVEL ou INFO)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(args.log_level or settings.log_level)
    sys.excepthook = _log_excecao_fatal

    try:
        if args.comando == "check-db":
            return 0 if asyncio.run(verificar(settings)) else 1
        serve(settings)
    except Exception:
        logger.exception("Erro ao iniciar o servidor")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
