import logging
import math
import time

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


class RateLimiter:
    """Contador por janela fixa: no máximo ``max_requests`` por cliente a cada ``window`` segundos."""

    def __init__(self, max_requests: int, window: float, clock=time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self.clock = clock
        self._janelas: dict[str, tuple[float, int]] = {}
        self._ultima_limpeza = clock()

    def hit(self, key: str) -> tuple[bool, int, float]:
        """Registra uma requisição; devolve (permitida, restantes, segundos até o reset)."""
        agora = self.clock()
        self._limpar(agora)

        inicio, contagem = self._janelas.get(key, (agora, 0))
        if agora - inicio >= self.window:
            inicio, contagem = agora, 0
        contagem += 1
        self._janelas[key] = (inicio, contagem)

        reset = max(0.0, inicio + self.window - agora)
        return contagem <= self.max_requests, max(0, self.max_requests - contagem), reset

    def _limpar(self, agora: float) -> None:
        if agora - self._ultima_limpeza < self.window:
            return
        self._janelas = {k: v for k, v in self._janelas.items() if agora - v[0] < self.window}
        self._ultima_limpeza = agora


def client_key(request: Request, trust_proxy: bool) -> str:
    # Atrás de um proxy reverso, o cliente é o último salto do X-Forwarded-For
    forwarded = request.headers.get("x-forwarded-for")
    if trust_proxy and forwarded:
        return forwarded.split(",")[-1].strip()
    return request.client.host if request.client else "desconhecido"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: RateLimiter, trust_proxy: bool = True):
        super().__init__(app)
        self.limiter = limiter
        self.trust_proxy = trust_proxy

    async def dispatch(self, request: Request, call_next):
        chave = client_key(request, self.trust_proxy)
        permitida, restantes, reset = self.limiter.hit(chave)
        headers = {
            "RateLimit-Limit": str(self.limiter.max_requests),
            "RateLimit-Remaining": str(restantes),
            "RateLimit-Reset": str(math.ceil(reset)),
        }
        if not permitida:
            logger.warning("Limite de requisições excedido para %s", chave)
            headers["Retry-After"] = str(math.ceil(reset))
            return JSONResponse(
                {"detail": "Muitas requisições, tente novamente mais tarde."},
                status_code=429,
                headers=headers,
            )
        response = await call_next(request)
        response.headers.update(headers)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for nome, valor in SECURITY_HEADERS.items():
            response.headers.setdefault(nome, valor)
        return response


class BodySizeLimitMiddleware:
    """Recusa corpos maiores que ``max_bytes`` com 413, com ou sem Content-Length."""

    def __init__(self, app: ASGIApp, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = dict(scope["headers"]).get(b"content-length", b"")
        if content_length.isdigit() and int(content_length) > self.max_bytes:
            response = JSONResponse({"detail": "Corpo da requisição muito grande"}, status_code=413)
            await response(scope, receive, send)
            return

        recebidos = 0

        async def receive_limitado():
            nonlocal recebidos
            message = await receive()
            if message["type"] == "http.request":
                recebidos += len(message.get("body", b""))
                if recebidos > self.max_bytes:
                    raise HTTPException(status_code=413, detail="Corpo da requisição muito grande")
            return message

        await self.app(scope, receive_limitado, send)
