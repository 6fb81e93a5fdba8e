"""
Integration tests for ImageRepository over the in-memory blob store.

Covers whole and chunked uploads with versioning, paged listing, album
management and cross-album copies end to end.
"""

import asyncio
import math

import pytest

from imagestore.core.config_manager import ImageStoreConfig, RepositoryConfig
from imagestore.exceptions import (
    ImageNotFoundError,
    InvalidArgumentError,
    MissingChunkError,
    StorageOperationFailedError,
)
from imagestore.repository import ContinuationCache, ImageRepository
from imagestore.storage.memory import InMemoryBlobStore, compute_md5

PATHNAME = "2024/06/01/raw/a.jpg"


@pytest.fixture
def store():
    return InMemoryBlobStore()


@pytest.fixture
async def repository(store):
    repository = ImageRepository(store, config=RepositoryConfig(max_chunk_size=1024))
    yield repository
    await repository.close()


class TestTripScenario:
    """Upload, overwrite and read back an image in a new album."""

    @pytest.mark.asyncio
    async def test_upload_then_overwrite(self, store, repository):
        """Test the first upload creates the album and the second preserves the first."""
        bytes1 = b"\xff\xd8first"
        bytes2 = b"\xff\xd8second"

        assert "trip" not in await repository.list_containers()
        first = await repository.upload_whole("trip", PATHNAME, bytes1, "image/jpeg")
        assert first.previous_version is None
        assert "trip" in await repository.list_containers()

        second = await repository.upload_whole("trip", PATHNAME, bytes2, "image/jpeg")

        current = await repository.get_image("trip", PATHNAME)
        assert current.content == bytes2
        assert current.content_type == "image/jpeg"

        previous = await repository.get_image("trip", PATHNAME, second.previous_version)
        assert previous.content == bytes1

        history = await repository.list_image_versions("trip", PATHNAME)
        assert [v.snapshot_id for v in history] == [second.previous_version]


class TestAlbums:
    """Album listing and deletion through the facade."""

    @pytest.mark.asyncio
    async def test_default_never_listed(self, store, repository):
        """Test the default album is hidden even when it exists."""
        await store.create_container_if_not_exists("default")
        await repository.upload_whole("trip", "a.jpg", b"x")

        assert await repository.list_containers() == {"trip"}

    @pytest.mark.asyncio
    async def test_deleted_album_not_listed(self, repository):
        """Test a deleted album disappears from the listing."""
        await repository.upload_whole("trip", "a.jpg", b"x")
        await repository.upload_whole("party", "b.jpg", b"x")

        await repository.delete_container("trip")

        assert await repository.list_containers() == {"party"}

    @pytest.mark.asyncio
    async def test_album_names_ignore_case(self, repository):
        """Test every operation resolves an album whatever case its name is given in."""
        await repository.upload_whole("trip", "a.jpg", b"v1", "image/jpeg")

        second = await repository.upload_whole("Trip", "a.jpg", b"v2")
        assert second.container_name == "trip"
        assert second.previous_version is not None

        await repository.begin_chunked("TRIP", "b.jpg")
        await repository.put_chunk("Trip", "b.jpg", "00000000", b"chunk")
        await repository.commit_chunked("tRIP", "b.jpg", ["00000000"])

        page = await repository.list_images("TRIP")
        assert [image.name for image in page.images] == ["a.jpg", "b.jpg"]
        assert (await repository.get_image("Trip", "a.jpg")).content == b"v2"
        assert await repository.list_containers() == {"trip"}

        await repository.delete_container("TRIP")

        assert "trip" not in await repository.list_containers()

    @pytest.mark.asyncio
    async def test_default_cannot_be_deleted(self, repository):
        """Test deleting the default album is an invalid argument."""
        with pytest.raises(InvalidArgumentError):
            await repository.delete_container("Default")


class TestChunkedUploads:
    """Chunked uploads through the facade."""

    @pytest.mark.asyncio
    async def test_order_decides_content(self, repository):
        """Test reordering the same chunk ids yields different, deterministic content."""
        chunks = {"00000000": b"AA", "00000001": b"BB", "00000002": b"CC"}

        await repository.begin_chunked("trip", "a.jpg")
        for chunk_id, data in chunks.items():
            await repository.put_chunk("trip", "a.jpg", chunk_id, data, compute_md5(data))
        await repository.commit_chunked("trip", "a.jpg", ["00000002", "00000000", "00000001"], "image/jpeg")
        assert (await repository.get_image("trip", "a.jpg")).content == b"CCAABB"

        await repository.begin_chunked("trip", "b.jpg")
        for chunk_id, data in chunks.items():
            await repository.put_chunk("trip", "b.jpg", chunk_id, data)
        await repository.commit_chunked("trip", "b.jpg", ["00000000", "00000001", "00000002"])
        assert (await repository.get_image("trip", "b.jpg")).content == b"AABBCC"

    @pytest.mark.asyncio
    async def test_chunked_overwrite_is_versioned(self, repository):
        """Test begin preserves the image the commit replaces."""
        await repository.upload_whole("trip", "a.jpg", b"old", "image/jpeg")

        previous = await repository.begin_chunked("trip", "a.jpg")
        await repository.put_chunk("trip", "a.jpg", "00000000", b"new")
        await repository.commit_chunked("trip", "a.jpg", ["00000000"])

        assert (await repository.get_image("trip", "a.jpg")).content == b"new"
        assert (await repository.get_image("trip", "a.jpg", previous)).content == b"old"

    @pytest.mark.asyncio
    async def test_missing_chunk_keeps_prior_content(self, repository):
        """Test a commit naming an unstaged chunk changes nothing."""
        await repository.upload_whole("trip", "a.jpg", b"old")
        await repository.begin_chunked("trip", "a.jpg")
        await repository.put_chunk("trip", "a.jpg", "00000000", b"new")

        with pytest.raises(MissingChunkError):
            await repository.commit_chunked("trip", "a.jpg", ["00000000", "00000001"])

        assert (await repository.get_image("trip", "a.jpg")).content == b"old"

    @pytest.mark.asyncio
    async def test_configured_chunk_limit(self, repository):
        """Test the repository applies the configured chunk limit."""
        await repository.begin_chunked("trip", "a.jpg")

        with pytest.raises(InvalidArgumentError):
            await repository.put_chunk("trip", "a.jpg", "00000000", b"x" * 1025)


class TestListing:
    """Paged listing through the facade."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,page_size", [(7, 3), (6, 3), (1, 5), (10, 1)])
    async def test_visits_every_image_once(self, store, count, page_size):
        """Test N images with page size k are visited exactly once in ceil(N/k) pages."""
        repository = ImageRepository(store)
        for i in range(count):
            await repository.upload_whole("trip", f"2024/06/01/raw/{i:03d}.jpg", b"x", "image/jpeg")

        seen = []
        pages = 0
        continuation_id = None
        while True:
            page = await repository.list_images("trip", "2024/06/01/raw/", continuation_id, page_size)
            pages += 1
            seen.extend(image.name for image in page.images)
            continuation_id = page.continuation_id
            if continuation_id is None:
                break

        assert sorted(seen) == [f"2024/06/01/raw/{i:03d}.jpg" for i in range(count)]
        assert len(seen) == count
        assert pages == math.ceil(count / page_size)
        assert len(repository.cache) == 0

    @pytest.mark.asyncio
    async def test_default_page_size(self, store):
        """Test the configured page size applies when none is given."""
        config = ImageStoreConfig(repository={"default_page_size": 2})
        repository = ImageRepository(store, cache=ContinuationCache(), config=config.repository)
        for name in ["a.jpg", "b.jpg", "c.jpg"]:
            await repository.upload_whole("trip", name, b"x")

        page = await repository.list_images("trip")

        assert [image.name for image in page.images] == ["a.jpg", "b.jpg"]
        assert page.continuation_id is not None

    @pytest.mark.asyncio
    async def test_concurrent_listings_are_independent(self, store, repository):
        """Test two listings in flight keep separate continuation ids."""
        for i in range(4):
            await repository.upload_whole("trip", f"{i}.jpg", b"x")

        first, second = await asyncio.gather(
            repository.list_images("trip", None, None, 2),
            repository.list_images("trip", None, None, 2),
        )

        assert first.continuation_id != second.continuation_id
        assert len(repository.cache) == 2


class TestCopyAndDelete:
    """Copies and deletes through the facade."""

    @pytest.mark.asyncio
    async def test_copy_between_albums(self, store, repository):
        """Test a copy lands in the target album under the same pathname."""
        await repository.upload_whole("trip", PATHNAME, b"jpeg", "image/jpeg")

        copy_id = await repository.copy_image("trip", PATHNAME, "best")
        await store.drain_copies()

        assert copy_id
        image = await repository.get_image("best", PATHNAME)
        assert image.content == b"jpeg"
        assert image.content_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_invalid_copies(self, repository):
        """Test self-copies and copies into the default album are rejected."""
        await repository.upload_whole("trip", "x", b"jpeg")

        with pytest.raises(InvalidArgumentError):
            await repository.copy_image("trip", "x", "trip")
        with pytest.raises(InvalidArgumentError):
            await repository.copy_image("trip", "x", "default")

    @pytest.mark.asyncio
    async def test_delete_missing_image(self, repository):
        """Test deleting a missing image succeeds."""
        await repository.upload_whole("trip", "a.jpg", b"x")

        await repository.delete_image("trip", "never-uploaded.jpg")
        await repository.delete_image("trip", "a.jpg")

        with pytest.raises(ImageNotFoundError):
            await repository.get_image("trip", "a.jpg")


class TestCancellation:
    """Cancellation stays distinct from repository errors."""

    @pytest.mark.asyncio
    async def test_cancelled_upload(self, store, repository):
        """Test cancelling during a content read raises CancelledError and writes nothing."""
        started = asyncio.Event()

        async def slow_content():
            yield b"part"
            started.set()
            await asyncio.sleep(10)
            yield b"never"

        task = asyncio.create_task(repository.upload_whole("trip", "a.jpg", slow_content()))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert not await store.container_exists("trip")


class TestFromConfig:
    """Construction from configuration."""

    @pytest.mark.asyncio
    async def test_memory_repository(self):
        """Test a memory-backed repository is built from configuration."""
        config = ImageStoreConfig(
            storage={"account_name": "holiday"},
            repository={"continuation_ttl_seconds": 60},
        )

        async with ImageRepository.from_config(config) as repository:
            assert isinstance(repository.store, InMemoryBlobStore)
            assert repository.cache.ttl_seconds == 60

            await repository.upload_whole("trip", "a.jpg", b"x")
            page = await repository.list_images("trip")
            assert page.images[0].primary_uri == "https://holiday.blob.core.windows.net/trip/a.jpg"

    def test_misconfigured_storage(self):
        """Test a storage section that cannot produce a store raises a repository error."""
        config = ImageStoreConfig(storage={"type": "azure"})

        with pytest.raises(StorageOperationFailedError) as exc_info:
            ImageRepository.from_config(config)

        assert exc_info.value.details == {"operation": "configure storage"}
