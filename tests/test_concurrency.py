"""Criações simultâneas não se atrapalham: cada uma recebe seu próprio ID."""
import asyncio

import httpx
import pytest

from atendimentos.main import create_app
from atendimentos.store import AtendimentoStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.mark.anyio
async def test_concurrent_creations_get_distinct_ids(make_settings):
    settings = make_settings()
    store = AtendimentoStore.from_settings(settings)
    await store.criar_schema()
    app = create_app(settings, store=store)

    payloads = [
        {"name": "Cliente Um", "email": "um@example.com", "serviceDescription": "Reparo no telhado"},
        {"name": "Cliente Dois", "email": "dois@example.com", "serviceDescription": "Troca de encanamento"},
    ]
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            responses = await asyncio.gather(
                *(client.post("/api/atendimentos", json=p) for p in payloads)
            )
            listed = (await client.get("/api/atendimentos")).json()
    finally:
        await store.fechar()

    assert [r.status_code for r in responses] == [201, 201]
    ids = {r.json()["id"] for r in responses}
    assert len(ids) == 2
    assert {r["id"] for r in listed} == ids
    assert {r["email"] for r in listed} == {"um@example.com", "dois@example.com"}
