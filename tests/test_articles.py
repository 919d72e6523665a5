"""
Read-side endpoint tests — article detail, user status, listing, stats,
health and the catch-all 404.
"""
import pytest
from httpx import AsyncClient, ASGITransport

from votes_api.main import app
from votes_api.services import article_store


def strip_timestamp(body: dict) -> dict:
    return {k: v for k, v in body.items() if k != "timestamp"}


# ---------------------------------------------------------------------------
# Article detail
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_article(async_client: AsyncClient, article):
    resp = await async_client.get("/api/articulo/foo")
    assert resp.status_code == 200
    body = resp.json()
    assert body["mensaje"] == "Información del artículo foo"
    detail = body["articulo"]
    assert detail["nombre"] == "foo"
    assert detail["titulo"] == "Title of foo"
    assert detail["img"] == "https://img.example.com/foo.png"
    assert detail["contenido"] == "Content of foo"
    assert detail["voto"] == 0
    assert detail["comentarios"] == []
    assert detail["totalComentarios"] == 0
    assert detail["fechaCreacion"] is not None
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_get_article_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/articulo/missing")
    assert resp.status_code == 404
    assert resp.json()["mensaje"] == "Artículo no encontrado"


@pytest.mark.asyncio
async def test_get_article_is_idempotent(async_client: AsyncClient, article):
    """Repeated reads with no writes in between return the same payload."""
    await async_client.put("/api/votar/foo/masuno", json={"userId": "u1"})
    await async_client.post(
        "/api/votar/foo/comentario", json={"autor": "A", "texto": "T", "userId": "u1"}
    )
    first = (await async_client.get("/api/articulo/foo")).json()
    second = (await async_client.get("/api/articulo/foo")).json()
    assert strip_timestamp(first) == strip_timestamp(second)
    assert first["articulo"]["voto"] == 1


# ---------------------------------------------------------------------------
# User status
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_status_tracks_votes_and_comments(async_client: AsyncClient, article):
    url = "/api/articulo/foo/estado-usuario/u1"
    body = (await async_client.get(url)).json()
    assert (body["yaVoto"], body["yaComento"]) == (False, False)
    assert body["userId"] == "u1"
    assert body["articulo"] == "foo"

    await async_client.put("/api/votar/foo/masuno", json={"userId": "u1"})
    body = (await async_client.get(url)).json()
    assert (body["yaVoto"], body["yaComento"]) == (True, False)

    await async_client.post(
        "/api/votar/foo/comentario", json={"autor": "A", "texto": "T", "userId": "u1"}
    )
    body = (await async_client.get(url)).json()
    assert (body["yaVoto"], body["yaComento"]) == (True, True)

    other = (await async_client.get("/api/articulo/foo/estado-usuario/u2")).json()
    assert (other["yaVoto"], other["yaComento"]) == (False, False)


@pytest.mark.asyncio
async def test_user_status_missing_article(async_client: AsyncClient):
    resp = await async_client.get("/api/articulo/missing/estado-usuario/u1")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_default_sort_and_page(async_client: AsyncClient, make_article):
    for name in ("charlie", "alpha", "bravo"):
        await make_article(name)

    resp = await async_client.get("/api/votos")
    assert resp.status_code == 200
    body = resp.json()
    assert [a["nombre"] for a in body["datos"]] == ["alpha", "bravo", "charlie"]
    assert body["paginacion"] == {"total": 3, "pagina": 1, "limite": 10, "totalPaginas": 1}


@pytest.mark.asyncio
async def test_list_articles_pagination(async_client: AsyncClient, make_article):
    for i in range(25):
        await make_article(f"art-{i:02d}")

    body = (await async_client.get("/api/votos", params={"page": 3, "limit": 10})).json()
    assert [a["nombre"] for a in body["datos"]] == [f"art-{i:02d}" for i in range(20, 25)]
    assert body["paginacion"]["totalPaginas"] == 3


@pytest.mark.asyncio
async def test_list_articles_sorted_by_votes_desc(async_client: AsyncClient, make_article):
    await make_article("low", vote_count=1)
    await make_article("high", vote_count=9)
    await make_article("mid", vote_count=5)

    body = (await async_client.get("/api/votos", params={"sortBy": "voto", "order": "desc"})).json()
    assert [a["nombre"] for a in body["datos"]] == ["high", "mid", "low"]
    assert [a["voto"] for a in body["datos"]] == [9, 5, 1]


@pytest.mark.asyncio
async def test_list_articles_unknown_sort_falls_back_to_name(async_client: AsyncClient, make_article):
    await make_article("b")
    await make_article("a")
    body = (await async_client.get("/api/votos", params={"sortBy": "__class__"})).json()
    assert [a["nombre"] for a in body["datos"]] == ["a", "b"]


@pytest.mark.asyncio
async def test_list_articles_includes_comment_counts(async_client: AsyncClient, article):
    for user in ("u1", "u2"):
        await async_client.post(
            "/api/votar/foo/comentario", json={"autor": "A", "texto": "T", "userId": user}
        )
    body = (await async_client.get("/api/votos")).json()
    assert body["datos"][0]["totalComentarios"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"page": 0}, {"limit": "ten"}, {"order": "sideways"}])
async def test_list_articles_rejects_bad_params(async_client: AsyncClient, params):
    resp = await async_client.get("/api/votos", params=params)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_stats_empty_store(async_client: AsyncClient):
    body = (await async_client.get("/api/estadisticas")).json()
    assert body["estadisticas"] == {
        "totalVotos": 0,
        "totalArticulos": 0,
        "promedioVotos": 0.0,
        "totalComentarios": 0,
    }


@pytest.mark.asyncio
async def test_stats_aggregates_votes_and_comments(async_client: AsyncClient, make_article):
    await make_article("one")
    await make_article("two")
    for user in ("a", "b", "c"):
        await async_client.put("/api/votar/one/masuno", json={"userId": user})
    await async_client.put("/api/votar/two/masuno", json={"userId": "a"})
    await async_client.post(
        "/api/votar/two/comentario", json={"autor": "A", "texto": "T", "userId": "a"}
    )

    resp = await async_client.get("/api/estadisticas")
    assert resp.status_code == 200
    stats = resp.json()["estadisticas"]
    assert stats["totalVotos"] == 4
    assert stats["totalArticulos"] == 2
    assert stats["promedioVotos"] == pytest.approx(2.0)
    assert stats["totalComentarios"] == 1


# ---------------------------------------------------------------------------
# Health, unknown routes, store availability
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["database"]["connected"] is True
    assert "timestamp" in body
    assert body["uptime"] >= 0


@pytest.mark.asyncio
async def test_unknown_route_returns_404_with_echo(async_client: AsyncClient):
    resp = await async_client.delete("/api/nothing/here")
    assert resp.status_code == 404
    body = resp.json()
    assert body["mensaje"] == "Endpoint no encontrado"
    assert body["path"] == "/api/nothing/here"
    assert body["method"] == "DELETE"
    assert "timestamp" in body


@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [("POST", "/api/votos"), ("DELETE", "/api/articulo/foo")])
async def test_wrong_method_on_known_path_returns_404(async_client: AsyncClient, method, path):
    resp = await async_client.request(method, path)
    assert resp.status_code == 404
    body = resp.json()
    assert body["mensaje"] == "Endpoint no encontrado"
    assert (body["path"], body["method"]) == (path, method)
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_unexpected_error_returns_json_500(monkeypatch):
    async def broken(db):
        raise RuntimeError("boom")

    monkeypatch.setattr(article_store, "aggregate_stats", broken)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/estadisticas")
    assert resp.status_code == 500
    body = resp.json()
    assert body["mensaje"] == "Error interno del servidor"
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_disconnected_store_returns_503(async_client: AsyncClient, article):
    app.state.store.connected = False
    try:
        resp = await async_client.get("/api/articulo/foo")
    finally:
        app.state.store.connected = True
    assert resp.status_code == 503
    assert resp.json()["mensaje"] == "Servicio no disponible - Error de base de datos"


@pytest.mark.asyncio
async def test_diagnostic_headers(async_client: AsyncClient, article):
    resp = await async_client.get("/api/articulo/foo")
    assert float(resp.headers["x-response-time-ms"]) >= 0
    # Article row + selectinload(comments).
    assert int(resp.headers["x-query-count"]) >= 2


@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    resp = await async_client.options(
        "/api/votos",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert resp.headers.get("access-control-allow-credentials", "").lower() != "true"
