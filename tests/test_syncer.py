"""White-box tests for the folder-to-album synchronization task."""

from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import FakePhotosService
from photos_album_uploader.models import Album, MediaItem
from photos_album_uploader.syncer import AlbumIndexError, AlbumSyncTask, fetch_all_albums


def make_tree(root: Path, *files: str) -> Path:
    for relative in files:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"fake image")
    return root


@pytest.mark.asyncio
class TestAlbumSyncTask:
    """Test album synchronization."""

    async def test_new_folder_creates_one_album(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that two images in a new folder create and fill one album."""
        root = make_tree(tmp_path / "photos", "2020/a.jpg", "2020/b.png")

        results = await AlbumSyncTask(fake_service).run(root)

        assert fake_service.created == ["2020"]
        assert sorted(p.name for p in fake_service.uploaded) == ["a.jpg", "b.png"]
        assert fake_service.album_ids_linked() == ["album-1", "album-1"]
        assert all(r.success for r in results)
        assert {r.album_title for r in results} == {"2020"}

    async def test_existing_album_is_reused(self, tmp_path: Path) -> None:
        """Test that an album already in the library is not created again."""
        root = make_tree(tmp_path, "2020/a.jpg")
        service = FakePhotosService(albums=[Album(id="existing", title="2020")])

        results = await AlbumSyncTask(service).run(root)

        assert service.created == []
        assert service.album_ids_linked() == ["existing"]
        assert results[0].success

    async def test_second_run_creates_no_albums(
        self, temp_photos_dir: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that synchronizing an unchanged tree twice creates no duplicates."""
        await AlbumSyncTask(fake_service).run(temp_photos_dir)
        first_run = sorted(fake_service.created)

        await AlbumSyncTask(fake_service).run(temp_photos_dir)

        assert first_run == ["album1", "album2", "album2-2021"]
        assert sorted(fake_service.created) == first_run

    async def test_same_derived_name_creates_one_album(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that folders a/b and a-b share the single album 'a-b'."""
        root = make_tree(tmp_path, "a/b/one.jpg", "a-b/two.jpg")

        results = await AlbumSyncTask(fake_service).run(root)

        assert fake_service.created == ["a-b"]
        assert fake_service.album_ids_linked() == ["album-1", "album-1"]
        assert all(r.success for r in results)

    async def test_concurrent_workers_create_album_once(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that concurrent uploads into a new album issue one create call."""
        root = make_tree(tmp_path, *[f"trip/photo{i}.jpg" for i in range(8)])

        results = await AlbumSyncTask(fake_service, max_concurrent_uploads=4).run(root)

        assert fake_service.created == ["trip"]
        assert len(fake_service.uploaded) == 8
        assert set(fake_service.album_ids_linked()) == {"album-1"}
        assert all(r.success for r in results)

    async def test_only_images_are_uploaded(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test the file-type filter and recursion into subfolders."""
        root = make_tree(
            tmp_path, "pics/x.png", "pics/y.JPG", "pics/notes.txt", "pics/sub/z.gif"
        )

        await AlbumSyncTask(fake_service).run(root)

        assert sorted(p.name for p in fake_service.uploaded) == ["x.png", "y.JPG", "z.gif"]
        assert sorted(fake_service.created) == ["pics", "pics-sub"]

    async def test_root_images_go_to_library(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that images directly under the root are linked without an album."""
        root = make_tree(tmp_path, "loose.jpg")

        results = await AlbumSyncTask(fake_service).run(root)

        assert fake_service.created == []
        assert fake_service.album_ids_linked() == [None]
        assert results[0].success
        assert results[0].album_title == ""

    async def test_repeated_page_token_stops_listing(self, tmp_path: Path) -> None:
        """Test that album listing terminates when the service repeats a token."""
        root = make_tree(tmp_path, "C/c.jpg")
        service = FakePhotosService(
            pages={
                None: ([Album(id="1", title="A")], "t1"),
                "t1": ([Album(id="2", title="B")], "t2"),
                "t2": ([Album(id="3", title="C")], "t1"),
            }
        )

        task = AlbumSyncTask(service)
        await task.run(root)

        assert service.list_calls == [None, "t1", "t2"]
        assert sorted(task.index.titles()) == ["A", "B", "C"]
        assert service.created == []
        assert service.album_ids_linked() == ["3"]

    async def test_duplicate_titles_last_wins(self, tmp_path: Path) -> None:
        """Test that the last listed album wins when titles collide."""
        root = make_tree(tmp_path, "dup/a.jpg")
        service = FakePhotosService(
            albums=[Album(id="first", title="dup"), Album(id="second", title="dup")]
        )

        await AlbumSyncTask(service).run(root)

        assert service.album_ids_linked() == ["second"]

    async def test_listing_failure_is_fatal(
        self, temp_photos_dir: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that a failed album listing aborts the run before any upload."""
        fake_service.fail_list = True

        with pytest.raises(AlbumIndexError):
            await AlbumSyncTask(fake_service).run(temp_photos_dir)

        assert fake_service.created == []
        assert fake_service.uploaded == []

    async def test_missing_root_is_fatal(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that a nonexistent root folder raises."""
        with pytest.raises(FileNotFoundError):
            await AlbumSyncTask(fake_service).run(tmp_path / "nonexistent")

        assert fake_service.list_calls == []

    async def test_upload_failure_does_not_stop_run(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that one failed upload is reported and the others proceed."""
        root = make_tree(tmp_path, "2020/a.jpg", "2020/b.jpg")
        fake_service.fail_upload = {"a.jpg"}

        results = await AlbumSyncTask(fake_service).run(root)

        by_name = {r.photo_path.name: r for r in results}
        assert not by_name["a.jpg"].success
        assert "Upload failed" in by_name["a.jpg"].error_message
        assert by_name["a.jpg"].album_title == "2020"
        assert by_name["b.jpg"].success

    async def test_link_failure_reports_orphaned_upload(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that a failed link keeps the upload token in the result."""
        root = make_tree(tmp_path, "2020/a.jpg", "2020/b.jpg")
        fake_service.fail_link = {"a.jpg"}

        results = await AlbumSyncTask(fake_service).run(root)

        by_name = {r.photo_path.name: r for r in results}
        assert by_name["a.jpg"].orphaned
        assert by_name["a.jpg"].upload_token == "token-a.jpg"
        assert "Link failed" in by_name["a.jpg"].error_message
        assert by_name["b.jpg"].success

    async def test_malformed_link_response_reports_orphaned_upload(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that an unparseable link result fails only that file."""
        root = make_tree(tmp_path, "2020/a.jpg", "2020/b.jpg")
        batch_create = fake_service.batch_create_media_items

        async def malformed_for_a(tickets, album_id=None):
            if tickets[0].path.name == "a.jpg":
                MediaItem.from_api({"filename": "a.jpg"})
            return await batch_create(tickets, album_id=album_id)

        with patch.object(fake_service, "batch_create_media_items", side_effect=malformed_for_a):
            results = await AlbumSyncTask(fake_service).run(root)

        by_name = {r.photo_path.name: r for r in results}
        assert by_name["a.jpg"].orphaned
        assert by_name["a.jpg"].upload_token == "token-a.jpg"
        assert "Link failed" in by_name["a.jpg"].error_message
        assert by_name["b.jpg"].success

    async def test_unexpected_album_creation_error_is_per_file(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that a non-API error creating an album does not abort the run."""
        root = make_tree(tmp_path, "bad/a.jpg", "good/b.jpg")
        create_album = fake_service.create_album

        async def broken_for_bad(title):
            if title == "bad":
                raise ValueError("Album id cannot be empty")
            return await create_album(title)

        with patch.object(fake_service, "create_album", side_effect=broken_for_bad):
            results = await AlbumSyncTask(fake_service).run(root)

        by_name = {r.photo_path.name: r for r in results}
        assert "Album creation failed" in by_name["a.jpg"].error_message
        assert by_name["b.jpg"].success

    async def test_album_creation_failure_is_per_file(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that a failed album creation only fails that album's images."""
        root = make_tree(tmp_path, "bad/a.jpg", "good/b.jpg")
        fake_service.fail_create = {"bad"}

        results = await AlbumSyncTask(fake_service).run(root)

        by_name = {r.photo_path.name: r for r in results}
        assert not by_name["a.jpg"].success
        assert "Album creation failed" in by_name["a.jpg"].error_message
        assert by_name["b.jpg"].success
        assert [p.name for p in fake_service.uploaded] == ["b.jpg"]

    async def test_dry_run_mode(
        self, temp_photos_dir: Path, fake_service: FakePhotosService
    ) -> None:
        """Test dry-run mode doesn't make API calls."""
        task = AlbumSyncTask(fake_service, dry_run=True)

        results = await task.run(temp_photos_dir)

        assert fake_service.list_calls == []
        assert fake_service.created == []
        assert fake_service.uploaded == []
        assert len(results) == 4
        assert all(r.success for r in results)
        assert sorted(task.index.titles()) == ["album1", "album2", "album2-2021"]

    async def test_empty_tree(
        self, tmp_path: Path, fake_service: FakePhotosService
    ) -> None:
        """Test that a tree without images uploads nothing."""
        (tmp_path / "empty").mkdir()

        results = await AlbumSyncTask(fake_service).run(tmp_path)

        assert results == []
        assert fake_service.list_calls == []


@pytest.mark.asyncio
class TestFetchAllAlbums:
    """Test listing every album of the library."""

    async def test_follows_page_tokens(self) -> None:
        """Test that every page is fetched until no token is returned."""
        service = FakePhotosService(
            pages={
                None: ([Album(id="1", title="A")], "t1"),
                "t1": ([Album(id="2", title="B")], None),
            }
        )

        albums = await fetch_all_albums(service)

        assert [a.title for a in albums] == ["A", "B"]
        assert service.list_calls == [None, "t1"]
