from unittest.mock import AsyncMock, patch

import httpx
import pytest

from apps.importer.config import Settings
from apps.importer.resolver import fetch_page_html, resolve_recipe_image_url

PAGE = "https://example.com/recipes/pie"

HTML = {"Content-Type": "text/html; charset=utf-8"}
JPEG = {"Content-Type": "image/jpeg"}


def _page(body):
    return httpx.Response(200, headers=HTML, text=f"<html><head></head><body>{body}</body></html>")


# ------------------------------ scenarios ----------------------------------

@pytest.mark.asyncio
async def test_og_image_resolves(mock_client, cfg):
    dish = "https://example.com/dish.jpg"

    def handler(request):
        if str(request.url) == PAGE:
            return _page(f'<meta property="og:image" content="{dish}">')
        if str(request.url) == dish:
            return httpx.Response(200, headers=JPEG)
        return httpx.Response(404)

    client, _ = mock_client(handler)
    assert await resolve_recipe_image_url(PAGE, client=client, settings=cfg) == dish


@pytest.mark.asyncio
async def test_verified_candidate_short_circuits_page_fetch(mock_client, cfg):
    valid = "https://example.com/valid.png"

    def handler(request):
        if str(request.url) == valid:
            return httpx.Response(200, headers={"Content-Type": "image/png"})
        return _page("")

    client, transport = mock_client(handler)
    assert await resolve_recipe_image_url(PAGE, valid, client=client, settings=cfg) == valid
    assert transport.calls(url=PAGE) == []


@pytest.mark.asyncio
async def test_candidate_cap_stops_before_thirteenth(mock_client, cfg):
    urls = [f"https://example.com/img-{i:02d}.jpg" for i in range(1, 16)]
    winner = urls[12]

    def handler(request):
        if str(request.url) == PAGE:
            return _page("".join(f'<img src="{u}">' for u in urls))
        if str(request.url) == winner:
            return httpx.Response(200, headers=JPEG)
        return httpx.Response(404)

    client, transport = mock_client(handler)
    assert await resolve_recipe_image_url(PAGE, client=client, settings=cfg) is None

    probed = {str(r.url) for r in transport.requests if str(r.url) != PAGE}
    assert probed == set(urls[:12])
    assert transport.calls(url=winner) == []


@pytest.mark.asyncio
async def test_page_fetch_network_error_returns_none(mock_client, cfg):
    def handler(request):
        raise httpx.ConnectError("dns failure", request=request)

    client, _ = mock_client(handler)
    assert await resolve_recipe_image_url(PAGE, client=client, settings=cfg) is None


# ------------------------------ fallbacks ----------------------------------

@pytest.mark.asyncio
async def test_failed_candidate_falls_through_to_scraping(mock_client, cfg):
    broken = "https://example.com/missing.jpg"
    inline = "https://example.com/inline.jpg"

    def handler(request):
        if str(request.url) == PAGE:
            return _page(f'<meta property="og:image" content="{broken}"><img src="{inline}">')
        if str(request.url) == inline:
            return httpx.Response(200, headers=JPEG)
        return httpx.Response(404)

    client, transport = mock_client(handler)
    assert await resolve_recipe_image_url(PAGE, broken, client=client, settings=cfg) == inline
    # HEAD + ranged GET once up front; not probed again from the ranked list
    assert len(transport.calls(url=broken)) == 2


@pytest.mark.asyncio
async def test_unverified_candidate_is_last_resort(mock_client, cfg):
    def handler(request):
        if str(request.url) == PAGE:
            return _page('<img src="/nope.jpg">')
        return httpx.Response(404)

    client, _ = mock_client(handler)
    got = await resolve_recipe_image_url(PAGE, "/uploads/guess.jpg", client=client, settings=cfg)
    assert got == "https://example.com/uploads/guess.jpg"


@pytest.mark.asyncio
async def test_data_uri_candidate_needs_no_requests(mock_client, cfg):
    client, transport = mock_client(lambda r: httpx.Response(500))
    uri = "data:image/png;base64,iVBORw0KGgo="
    assert await resolve_recipe_image_url(PAGE, uri, client=client, settings=cfg) == uri
    assert transport.requests == []


@pytest.mark.asyncio
async def test_unusable_candidate_is_ignored(mock_client, cfg):
    client, _ = mock_client(lambda r: httpx.Response(404))
    assert await resolve_recipe_image_url(PAGE, "javascript:void(0)", client=client, settings=cfg) is None


@pytest.mark.asyncio
async def test_non_html_page_yields_nothing(mock_client, cfg):
    client, _ = mock_client(
        lambda r: httpx.Response(200, headers={"Content-Type": "application/pdf"}, content=b"%PDF")
    )
    assert await resolve_recipe_image_url(PAGE, client=client, settings=cfg) is None


@pytest.mark.asyncio
async def test_cap_is_configurable(mock_client):
    urls = [f"https://example.com/p{i}.jpg" for i in range(5)]

    def handler(request):
        if str(request.url) == PAGE:
            return _page("".join(f'<img src="{u}">' for u in urls))
        return httpx.Response(404)

    client, transport = mock_client(handler)
    tight = Settings(fetch_timeout=2.0, max_verify_candidates=2)
    assert await resolve_recipe_image_url(PAGE, client=client, settings=tight) is None
    assert {str(r.url) for r in transport.requests} == {PAGE, urls[0], urls[1]}


# ------------------------------ page fetch ---------------------------------

@pytest.mark.asyncio
async def test_relative_candidates_resolve_against_final_url(mock_client, cfg):
    moved = "https://www.example.com/2024/pie/"

    def handler(request):
        if str(request.url) == PAGE:
            return httpx.Response(301, headers={"Location": moved})
        if str(request.url) == moved:
            return _page('<img data-src="photo.jpg">')
        if str(request.url) == moved + "photo.jpg":
            return httpx.Response(200, headers=JPEG)
        return httpx.Response(404)

    client, transport = mock_client(handler)
    assert await resolve_recipe_image_url(PAGE, client=client, settings=cfg) == moved + "photo.jpg"
    assert transport.calls("HEAD")[0].headers["Referer"] == PAGE


@pytest.mark.asyncio
async def test_non_ascii_page_url_is_sent_percent_encoded_as_referer(mock_client, cfg):
    page = "https://example.fr/recettes/crème-brûlée"

    def handler(request):
        if request.url.path == "/a.jpg":
            return httpx.Response(200, headers=JPEG)
        if request.url.host == "example.fr":
            return _page('<meta property="og:image" content="/a.jpg">')
        return httpx.Response(404)

    client, transport = mock_client(handler)
    assert await resolve_recipe_image_url(page, client=client, settings=cfg) == "https://example.fr/a.jpg"
    referer = transport.calls("HEAD")[0].headers["Referer"]
    assert referer == "https://example.fr/recettes/cr%C3%A8me-br%C3%BBl%C3%A9e"


@pytest.mark.asyncio
async def test_fetch_page_html_rejects_error_status(mock_client, cfg):
    client, _ = mock_client(lambda r: httpx.Response(503, headers=HTML, text="down"))
    assert await fetch_page_html(PAGE, client, cfg) is None


@pytest.mark.asyncio
async def test_owns_client_when_none_given(cfg):
    transport = httpx.MockTransport(
        lambda r: _page('<meta name="twitter:image" content="/tw.jpg">')
        if str(r.url) == PAGE
        else httpx.Response(200, headers=JPEG)
    )
    own = httpx.AsyncClient(transport=transport, follow_redirects=True)
    with patch("apps.importer.resolver.build_client", return_value=own) as build:
        got = await resolve_recipe_image_url(PAGE, settings=cfg)
    build.assert_called_once_with(cfg)
    assert got == "https://example.com/tw.jpg"
    assert own.is_closed


@pytest.mark.asyncio
async def test_walk_uses_verifier_in_rank_order(cfg):
    ranked_html = (
        '<img src="/low.jpg">'
        '<meta property="og:image" content="/high.jpg">'
    )
    fetch = AsyncMock(return_value=(ranked_html, PAGE))
    verify = AsyncMock(side_effect=[False, True])
    with patch("apps.importer.resolver.fetch_page_html", fetch), \
            patch("apps.importer.resolver.is_reachable_image", verify):
        got = await resolve_recipe_image_url(PAGE, client=object(), settings=cfg)
    assert got == "https://example.com/low.jpg"
    assert [c.args[0] for c in verify.await_args_list] == [
        "https://example.com/high.jpg",
        "https://example.com/low.jpg",
    ]
