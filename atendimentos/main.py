import logging
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from atendimentos import schemas
from atendimentos.config import Settings
from atendimentos.middleware import (
    BodySizeLimitMiddleware,
    RateLimiter,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
)
from atendimentos.store import AtendimentoStore, ConflictError, StoreError

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def get_store(request: Request) -> AtendimentoStore:
    """Dependência que entrega às rotas o store criado na montagem da aplicação."""
    return request.app.state.store


def nome_do_campo(nome: str) -> str:
    # Valores default são validados com o nome Python; a resposta usa sempre o nome do JSON
    campo = schemas.AtendimentoCreate.model_fields.get(nome)
    return campo.alias if campo is not None and campo.alias else nome


def erros_de_validacao(exc: RequestValidationError) -> List[dict]:
    erros = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        campo = nome_do_campo(loc[1]) if len(loc) > 1 and err.get("type") != "json_invalid" else "body"
        # ValueError levantado nos validators: usa só a mensagem, sem o prefixo do pydantic
        causa = (err.get("ctx") or {}).get("error")
        msg = str(causa) if err.get("type") == "value_error" and causa else err.get("msg", "")
        erros.append({"field": campo, "msg": msg})
    return erros


def create_app(settings: Optional[Settings] = None, store: Optional[AtendimentoStore] = None) -> FastAPI:
    settings = settings or Settings()
    store = store or AtendimentoStore.from_settings(settings)

    app = FastAPI(
        title="Atendimentos API",
        description="API assíncrona para cadastro e listagem de atendimentos",
        version="1.0.0",
    )
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=RateLimiter(settings.rate_limit_max, settings.rate_limit_window),
        trust_proxy=settings.trust_proxy,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    # --- EVENTOS DE CICLO DE VIDA ---

    @app.on_event("startup")
    async def startup():
        """
        Verifica a conexão antes de aceitar tráfego e cria a tabela se não existir.
        Se o banco estiver fora do ar, a inicialização falha e o processo termina.
        """
        try:
            await store.verificar_conexao()
        except StoreError:
            logger.critical("Banco de dados inacessível, encerrando.", exc_info=True)
            raise
        await store.criar_schema()

    @app.on_event("shutdown")
    async def shutdown():
        await store.fechar()

    @app.exception_handler(RequestValidationError)
    async def validacao_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"errors": erros_de_validacao(exc)}, status_code=status.HTTP_400_BAD_REQUEST)

    # --- ROTAS DE ATENDIMENTOS ---

    @app.post(
        "/api/atendimentos",
        response_model=schemas.AtendimentoResponse,
        status_code=status.HTTP_201_CREATED,
        responses={400: {"model": schemas.ErrosValidacao}, 409: {"description": "E-mail já cadastrado"}},
    )
    async def criar_atendimento(
        atendimento: schemas.AtendimentoCreate, store: AtendimentoStore = Depends(get_store)
    ):
        """Cadastra um novo atendimento; sem serviceDate o banco usa a data atual."""
        try:
            return await store.inserir(atendimento.model_dump())
        except ConflictError:
            logger.warning("Atendimento recusado por restrição do banco", exc_info=True)
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="E-mail já cadastrado")
        except StoreError:
            logger.exception("Erro no banco de dados")
            raise HTTPException(status_code=500, detail="Erro interno do servidor")

    @app.get("/api/atendimentos", response_model=List[schemas.AtendimentoResponse])
    async def listar_atendimentos(store: AtendimentoStore = Depends(get_store)):
        """Lista todos os atendimentos em ordem de ID."""
        try:
            return await store.listar()
        except StoreError:
            logger.exception("Erro ao buscar atendimentos")
            raise HTTPException(status_code=500, detail="Erro ao buscar atendimentos")

    # --- PÁGINAS ---

    @app.get("/cadastro", include_in_schema=False)
    async def cadastro():
        return FileResponse(STATIC_DIR / "cadastro.html")

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Servidor funcionando corretamente!"

    return app
