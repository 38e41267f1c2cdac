from __future__ import annotations

from sqlalchemy import func, select

import pytest
from spotipy.exceptions import SpotifyException

from cratedigger.db import init_db, session_scope
from cratedigger.errors import (
    AuthenticationRequiredError,
    CatalogLookupError,
    LinkExtractionError,
    ReleasePersistenceError,
    TokenExchangeError,
)
from cratedigger.models import Release
from cratedigger.orchestrator import ImportStage, RedditImportOrchestrator
from cratedigger.orchestrator.reddit_import import ImportProgress
from cratedigger.services.album_resolver import AlbumResolver
from cratedigger.services.release_writer import ReleaseWriter
from tests.support.fakes import (
    FakeCatalog,
    FakeExtractor,
    FakeGuard,
    FakeResolver,
    FakeTokenIssuer,
    MemoryWriter,
    album_link,
    album_payload,
)


def _orchestrator(
    *,
    guard: FakeGuard | None = None,
    extractor: FakeExtractor | None = None,
    token_issuer: FakeTokenIssuer | None = None,
    resolver=None,
    writer=None,
    on_progress=None,
) -> RedditImportOrchestrator:
    return RedditImportOrchestrator(
        guard=guard or FakeGuard(),
        extractor=extractor or FakeExtractor(),
        token_issuer=token_issuer or FakeTokenIssuer(),
        resolver=resolver or FakeResolver(),
        writer=writer or MemoryWriter(),
        on_progress=on_progress,
    )


@pytest.mark.asyncio
async def test_second_link_catalog_miss_is_recorded_and_batch_continues() -> None:
    links = [album_link("aaa"), album_link("bbb"), album_link("ccc")]
    resolver = FakeResolver(
        {
            links[0]: album_payload("aaa", name="First"),
            links[1]: CatalogLookupError("Failed to fetch album bbb", link=links[1], http_status=404),
            links[2]: album_payload("ccc", name="Third"),
        }
    )
    writer = MemoryWriter()
    orchestrator = _orchestrator(
        extractor=FakeExtractor(links), resolver=resolver, writer=writer
    )

    result = await orchestrator.run("Bearer admin")

    assert result.imported_count == 2
    assert result.failed_count == 1
    assert result.imported_albums == ["First", "Third"]
    assert result.failed_albums == [links[1]]
    assert [link for link, _ in resolver.calls] == links
    assert orchestrator.stage is ImportStage.DONE
    assert result.to_payload() == {
        "success": True,
        "importedCount": 2,
        "failedCount": 1,
        "importedAlbums": ["First", "Third"],
        "failedAlbums": [links[1]],
    }


@pytest.mark.asyncio
async def test_counts_always_cover_every_extracted_link() -> None:
    links = [
        album_link("good"),
        "https://open.spotify.com/album/",
        album_link("broken"),
        album_link("conflict"),
    ]
    malformed = album_payload("broken")
    del malformed["tracks"]
    resolver = AlbumResolver(
        FakeCatalog(
            albums={
                "good": album_payload("good"),
                "broken": malformed,
                "conflict": album_payload("conflict"),
            }
        ),
        genre_fallback=False,
    )
    writer = MemoryWriter(
        failures={album_link("conflict"): ReleasePersistenceError("conflict")}
    )

    result = await _orchestrator(
        extractor=FakeExtractor(links), resolver=resolver, writer=writer
    ).run("Bearer admin")

    assert result.imported_count + result.failed_count == len(links)
    assert result.imported_count == 1
    assert result.failed_albums == links[1:]


@pytest.mark.asyncio
async def test_unparseable_link_is_failed_not_fatal() -> None:
    links = ["https://open.spotify.com/album/???", album_link("ok")]
    resolver = AlbumResolver(FakeCatalog(albums={"ok": album_payload("ok")}), genre_fallback=False)

    result = await _orchestrator(extractor=FakeExtractor(links), resolver=resolver).run(
        "Bearer admin"
    )

    assert result.failed_albums == [links[0]]
    assert result.imported_count == 1


@pytest.mark.asyncio
async def test_unexpected_link_error_is_contained() -> None:
    links = [album_link("aaa"), album_link("bbb")]
    resolver = FakeResolver(
        {links[0]: RuntimeError("boom"), links[1]: album_payload("bbb", name="Second")}
    )

    result = await _orchestrator(extractor=FakeExtractor(links), resolver=resolver).run(
        "Bearer admin"
    )

    assert result.failed_albums == [links[0]]
    assert result.imported_albums == ["Second"]


@pytest.mark.asyncio
async def test_rejected_caller_touches_no_collaborator() -> None:
    guard = FakeGuard(error=AuthenticationRequiredError("No authorization header"))
    extractor = FakeExtractor([album_link("aaa")])
    token_issuer = FakeTokenIssuer()
    resolver = FakeResolver()
    writer = MemoryWriter()
    orchestrator = _orchestrator(
        guard=guard,
        extractor=extractor,
        token_issuer=token_issuer,
        resolver=resolver,
        writer=writer,
    )

    with pytest.raises(AuthenticationRequiredError):
        await orchestrator.run(None)

    assert extractor.calls == 0
    assert token_issuer.calls == 0
    assert resolver.calls == []
    assert writer.calls == []
    assert orchestrator.stage is ImportStage.FATAL


@pytest.mark.asyncio
async def test_zero_links_yield_empty_result() -> None:
    token_issuer = FakeTokenIssuer()

    result = await _orchestrator(extractor=FakeExtractor([]), token_issuer=token_issuer).run(
        "Bearer admin"
    )

    assert result.to_payload() == {
        "success": True,
        "importedCount": 0,
        "failedCount": 0,
        "importedAlbums": [],
        "failedAlbums": [],
    }
    assert token_issuer.calls == 1


@pytest.mark.asyncio
async def test_token_failure_aborts_before_any_link() -> None:
    resolver = FakeResolver()
    orchestrator = _orchestrator(
        extractor=FakeExtractor([album_link("aaa")]),
        token_issuer=FakeTokenIssuer(error=TokenExchangeError("Failed to get Spotify token")),
        resolver=resolver,
    )

    with pytest.raises(TokenExchangeError):
        await orchestrator.run("Bearer admin")

    assert resolver.calls == []
    assert orchestrator.stage is ImportStage.FATAL


@pytest.mark.asyncio
async def test_extraction_failure_skips_token_fetch() -> None:
    token_issuer = FakeTokenIssuer()
    orchestrator = _orchestrator(
        extractor=FakeExtractor(error=LinkExtractionError("Timed out")),
        token_issuer=token_issuer,
    )

    with pytest.raises(LinkExtractionError):
        await orchestrator.run("Bearer admin")

    assert token_issuer.calls == 0


@pytest.mark.asyncio
async def test_token_is_fetched_once_and_shared_by_every_link() -> None:
    links = [album_link("aaa"), album_link("bbb")]
    token_issuer = FakeTokenIssuer()
    resolver = FakeResolver({link: album_payload(link.rsplit("/", 1)[1]) for link in links})

    await _orchestrator(
        extractor=FakeExtractor(links), token_issuer=token_issuer, resolver=resolver
    ).run("Bearer admin")

    assert token_issuer.calls == 1
    assert {credential for _, credential in resolver.calls} == {token_issuer.credential}


@pytest.mark.asyncio
async def test_progress_is_reported_per_link() -> None:
    links = [album_link("aaa"), album_link("bbb")]
    resolver = FakeResolver({link: album_payload(link.rsplit("/", 1)[1]) for link in links})
    events: list[ImportProgress] = []

    await _orchestrator(
        extractor=FakeExtractor(links), resolver=resolver, on_progress=events.append
    ).run("Bearer admin")

    stages = [event.stage for event in events]
    assert stages == [
        ImportStage.EXTRACTING,
        ImportStage.PROCESSING_LINKS,
        ImportStage.PROCESSING_LINKS,
        ImportStage.DONE,
    ]
    assert [(e.current, e.total, e.current_url) for e in events[1:3]] == [
        (1, 2, links[0]),
        (2, 2, links[1]),
    ]


@pytest.mark.asyncio
async def test_failing_progress_callback_does_not_abort_batch() -> None:
    links = [album_link("aaa"), album_link("bbb")]
    resolver = FakeResolver(
        {
            links[0]: album_payload("aaa", name="First"),
            links[1]: album_payload("bbb", name="Second"),
        }
    )
    seen: list[ImportProgress] = []

    def _flaky(progress: ImportProgress) -> None:
        seen.append(progress)
        if progress.stage is ImportStage.PROCESSING_LINKS and progress.current == 1:
            raise RuntimeError("progress sink unavailable")

    orchestrator = _orchestrator(
        extractor=FakeExtractor(links), resolver=resolver, on_progress=_flaky
    )

    result = await orchestrator.run("Bearer admin")

    assert orchestrator.stage is ImportStage.DONE
    assert result.imported_albums == ["First", "Second"]
    assert result.imported_count + result.failed_count == len(links)
    assert [link for link, _ in resolver.calls] == links
    assert seen[-1].stage is ImportStage.DONE


@pytest.mark.asyncio
async def test_rerunning_unchanged_batch_does_not_grow_store() -> None:
    init_db()
    links = [album_link("aaa"), album_link("bbb")]
    catalog = FakeCatalog(albums={"aaa": album_payload("aaa"), "bbb": album_payload("bbb")})

    def _run_batch() -> RedditImportOrchestrator:
        return _orchestrator(
            extractor=FakeExtractor(links),
            resolver=AlbumResolver(catalog, genre_fallback=False),
            writer=ReleaseWriter(),
        )

    first = await _run_batch().run("Bearer admin")
    second = await _run_batch().run("Bearer admin")

    assert first.imported_count == second.imported_count == 2
    with session_scope() as session:
        total = session.execute(select(func.count()).select_from(Release)).scalar_one()
    assert total == 2


@pytest.mark.asyncio
async def test_catalog_404_via_resolver_lands_in_failed_list() -> None:
    links = [album_link("aaa"), album_link("bbb"), album_link("ccc")]
    catalog = FakeCatalog(
        albums={
            "aaa": album_payload("aaa", name="One"),
            "bbb": SpotifyException(404, -1, "non existing id"),
            "ccc": album_payload("ccc", name="Three"),
        }
    )

    result = await _orchestrator(
        extractor=FakeExtractor(links),
        resolver=AlbumResolver(catalog, genre_fallback=False),
    ).run("Bearer admin")

    assert (result.imported_count, result.failed_count) == (2, 1)
    assert result.failed_albums == [links[1]]
