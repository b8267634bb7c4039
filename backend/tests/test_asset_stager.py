"""Tests for the AssetStager."""

import pytest

from clipcomposer.common.errors import MissingClipMatchError
from clipcomposer.staging.asset_stager import (
    AssetStager,
    OwnedAssets,
    RawClipFile,
    normalize_render_src,
    staged_asset_url,
)

from conftest import ORIGIN, make_clip


class TestRawClipFile:
    """Tests for upload name matching."""

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [("clip_01.mp4", "clip_01"), ("Clip.MOV", "Clip"), ("a.b.webm", "a.b"), ("notes.txt", "notes.txt")],
    )
    def test_clip_name_strips_video_extension(self, filename, expected):
        assert RawClipFile(filename=filename, data=b"").clip_name == expected


class TestOwnedAssets:
    """Tests for the owned asset set."""

    def test_keeps_order_and_drops_duplicates(self):
        owned = OwnedAssets(["b"])
        owned.add("a")
        owned.add("b")

        assert list(owned) == ["b", "a"]
        assert len(owned) == 2
        assert "a" in owned


class TestStageClipFiles:
    """Tests for staging uploads against clip records."""

    @pytest.mark.asyncio
    async def test_uploads_matched_by_name(self, stager, store):
        clips = [make_clip("first"), make_clip("second")]
        uploads = [
            RawClipFile(filename="second.mov", data=b"2"),
            RawClipFile(filename="first.mp4", data=b"1"),
        ]
        owner = OwnedAssets()

        staged = await stager.stage_clip_files(clips, uploads, owner)

        assert [clip.clip_name for clip in staged] == ["first", "second"]
        assert len(owner) == 2
        for clip in staged:
            assert clip.staged_asset_id in owner
            assert clip.render_src == str(store.resolve(clip.staged_asset_id))
            assert clip.video_src == staged_asset_url(ORIGIN, clip.staged_asset_id)

    @pytest.mark.asyncio
    async def test_url_reference_mode(self, store):
        stager = AssetStager(store, origin=ORIGIN, reference_mode="url")
        owner = OwnedAssets()

        [clip] = await stager.stage_clip_files(
            [make_clip("a")], [RawClipFile(filename="a.mp4", data=b"x")], owner
        )

        assert clip.render_src == f"{ORIGIN}/api/files/staged/{clip.staged_asset_id}"

    @pytest.mark.asyncio
    async def test_clip_with_render_src_needs_no_upload(self, stager):
        clip = make_clip("remote", render_src="https://cdn.test/remote.mp4")
        owner = OwnedAssets()

        [staged] = await stager.stage_clip_files([clip], [], owner)

        assert staged.render_src == "https://cdn.test/remote.mp4"
        assert len(owner) == 0

    @pytest.mark.asyncio
    async def test_previously_staged_clip_is_owned(self, stager):
        asset = await stager.stage_upload(RawClipFile(filename="a.mp4", data=b"x"))
        clip = make_clip("a", staged_asset_id=asset.asset_id)
        owner = OwnedAssets()

        [staged] = await stager.stage_clip_files([clip], [], owner)

        assert staged.render_src == str(asset.path)
        assert asset.asset_id in owner

    @pytest.mark.asyncio
    async def test_missing_upload_raises_after_staging_earlier_clips(self, stager, store):
        clips = [make_clip("present"), make_clip("absent")]
        uploads = [RawClipFile(filename="present.mp4", data=b"1")]
        owner = OwnedAssets()

        with pytest.raises(MissingClipMatchError) as exc_info:
            await stager.stage_clip_files(clips, uploads, owner)

        assert exc_info.value.clip_name == "absent"
        assert len(owner) == 1
        assert list(owner)[0] in store


class TestNormalizeRenderSrc:
    """Tests for deriving render references from preview sources."""

    @pytest.mark.parametrize(
        ("video_src", "expected"),
        [
            ("/videos/a.mp4", f"{ORIGIN}/videos/a.mp4"),
            ("videos/a.mp4", f"{ORIGIN}/videos/a.mp4"),
            ("https://cdn.test/a.mp4", "https://cdn.test/a.mp4"),
        ],
    )
    def test_relative_sources_become_absolute(self, video_src, expected):
        clip = normalize_render_src(make_clip("a", video_src=video_src), ORIGIN + "/")

        assert clip.render_src == expected

    def test_existing_render_src_wins(self):
        clip = make_clip("a", video_src="/x.mp4", render_src="/tmp/a.mp4")

        assert normalize_render_src(clip, ORIGIN).render_src == "/tmp/a.mp4"

    @pytest.mark.parametrize("video_src", [None, "blob:http://localhost/1234"])
    def test_unusable_source_raises(self, video_src):
        with pytest.raises(MissingClipMatchError):
            normalize_render_src(make_clip("a", video_src=video_src), ORIGIN)
