"""Tests for playlist classification and master resolution."""
from conftest import MASTER_PLAYLIST, MASTER_URL, MEDIA_URL, FakeClient, media_playlist, segment_names

from liverecorder.http_client import FetchError
from liverecorder.playlist import (
    MasterResolver,
    PlaylistKind,
    Variant,
    classify_playlist,
    classify_url,
    is_live_stream,
    parse_segment_uris,
    parse_variants,
    rank_variants,
)


class TestClassifyPlaylist:
    """Tests for classify_playlist."""

    def test_master(self):
        assert classify_playlist(MASTER_PLAYLIST) == PlaylistKind.MASTER

    def test_master_wins_over_end_marker(self):
        text = MASTER_PLAYLIST + "#EXT-X-ENDLIST\n"
        assert classify_playlist(text) == PlaylistKind.MASTER

    def test_live_media_playlist(self):
        assert classify_playlist(media_playlist(segment_names(0, 3))) == PlaylistKind.LIVE

    def test_end_list_is_closed(self):
        text = media_playlist(segment_names(0, 3), ended=True)
        assert classify_playlist(text) == PlaylistKind.CLOSED

    def test_vod_type_is_closed(self):
        text = media_playlist(segment_names(0, 3)).replace(
            "#EXT-X-VERSION:3", "#EXT-X-VERSION:3\n#EXT-X-PLAYLIST-TYPE:VOD"
        )
        assert classify_playlist(text) == PlaylistKind.CLOSED

    def test_event_without_end_is_live(self):
        text = media_playlist(segment_names(0, 3)).replace(
            "#EXT-X-VERSION:3", "#EXT-X-VERSION:3\n#EXT-X-PLAYLIST-TYPE:EVENT"
        )
        assert classify_playlist(text) == PlaylistKind.LIVE

    def test_same_text_classifies_the_same(self):
        for text in (MASTER_PLAYLIST, media_playlist(["a.ts"]), media_playlist(["a.ts"], ended=True)):
            assert classify_playlist(text) == classify_playlist(text)


class TestClassifyUrl:
    """Tests for fetching classification."""

    async def test_fetch_error_degrades_to_closed(self):
        client = FakeClient({MEDIA_URL: FetchError("boom")})
        assert await classify_url(client, MEDIA_URL) == PlaylistKind.CLOSED
        assert await is_live_stream(client, MEDIA_URL) is False

    async def test_unexpected_error_degrades_to_closed(self):
        client = FakeClient({MEDIA_URL: RuntimeError("parser exploded")})
        assert await classify_url(client, MEDIA_URL) == PlaylistKind.CLOSED

    async def test_live_stream(self):
        client = FakeClient({MEDIA_URL: media_playlist(segment_names(0, 2))})
        assert await is_live_stream(client, MEDIA_URL) is True

    async def test_master_is_not_live(self):
        client = FakeClient({MASTER_URL: MASTER_PLAYLIST})
        assert await is_live_stream(client, MASTER_URL) is False


class TestParsing:
    """Tests for manifest parsing helpers."""

    def test_segment_uris_in_manifest_order(self):
        names = segment_names(10, 14)
        assert parse_segment_uris(media_playlist(names)) == names

    def test_variants_resolved_against_master_url(self):
        variants = parse_variants(MASTER_PLAYLIST, MASTER_URL)

        assert [v.url for v in variants] == [
            "https://cdn.example.com/live/720p/index.m3u8",
            "https://cdn.example.com/live/1080p/index.m3u8",
        ]
        assert variants[1].height == 1080
        assert variants[1].bandwidth == 5000000

    def test_absolute_variant_uri_kept(self):
        text = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=800000\nhttps://other.example.com/low.m3u8\n"
        variants = parse_variants(text, MASTER_URL)
        assert variants[0].url == "https://other.example.com/low.m3u8"
        assert variants[0].resolution == "unknown"

    def test_media_playlist_has_no_variants(self):
        assert parse_variants(media_playlist(["a.ts"]), MEDIA_URL) == []

    def test_bandwidth_breaks_resolution_ties(self):
        ranked = rank_variants([
            Variant(url="a", bandwidth=3000000, width=1920, height=1080),
            Variant(url="b", bandwidth=6000000, width=1920, height=1080),
            Variant(url="c", bandwidth=9000000, width=1280, height=720),
        ])
        assert [v.url for v in ranked] == ["b", "a", "c"]


class TestMasterResolver:
    """Tests for MasterResolver."""

    async def test_picks_1080p_variant(self):
        resolver = MasterResolver(FakeClient({MASTER_URL: MASTER_PLAYLIST}))

        best = await resolver.resolve(MASTER_URL)

        assert best.url == "https://cdn.example.com/live/1080p/index.m3u8"
        assert best.resolution == "1920x1080"

    async def test_resolution_is_repeatable(self):
        client = FakeClient({MASTER_URL: MASTER_PLAYLIST})
        resolver = MasterResolver(client)

        first = await resolver.resolve(MASTER_URL)
        second = await resolver.resolve(MASTER_URL)

        assert first == second
        assert client.calls == [MASTER_URL, MASTER_URL]

    async def test_media_playlist_is_not_master(self):
        resolver = MasterResolver(FakeClient({MEDIA_URL: media_playlist(["a.ts"])}))
        assert await resolver.resolve(MEDIA_URL) is None

    async def test_fetch_failure_is_not_master(self):
        resolver = MasterResolver(FakeClient())
        assert await resolver.resolve(MEDIA_URL) is None
