"""Tests for chunked upload staging and assembly."""

import itertools
import os

import pytest

from packhub.lib.storage import (
    Category,
    ChunkAssembler,
    InvalidChunkRange,
    InvalidFilename,
    MissingChunk,
    StorageWriteFailure,
)


@pytest.fixture
def assembler(resolver, locks):
    return ChunkAssembler(resolver, locks)


async def _send(assembler, filename, chunks, order):
    results = []
    for index in order:
        results.append(await assembler.receive_chunk(filename, index, len(chunks), chunks[index]))
    return results


class TestAssemblyScenario:
    @pytest.mark.asyncio
    async def test_out_of_order_chunks_assemble_in_index_order(self, assembler, resolver):
        chunks = [b"a" * 4096, b"b" * 4096, b"c" * 10]

        first, second, last = await _send(assembler, "pack.zip", chunks, [1, 0, 2])

        assert first.status == "pending"
        assert second.status == "pending"
        assert last.status == "assembled"
        assert last.final_path.name == "pack.zip"
        assert last.final_path.parent == resolver.category_dir(Category.ARCHIVES)
        assert last.final_path.stat().st_size == 8202
        assert last.final_path.read_bytes() == b"".join(chunks)

    @pytest.mark.asyncio
    async def test_staging_removed_after_assembly(self, assembler, resolver):
        await _send(assembler, "pack.zip", [b"1", b"2"], [0, 1])
        assert not resolver.staging_dir("pack.zip").exists()

    @pytest.mark.asyncio
    async def test_single_chunk_upload(self, assembler):
        result = await assembler.receive_chunk("one.zip", 0, 1, b"payload")
        assert result.assembled
        assert result.final_path.read_bytes() == b"payload"

    @pytest.mark.asyncio
    async def test_any_interleaving_matches_ascending_order(self, assembler):
        chunks = [b"first-", b"second-", b"third-", b"last"]
        expected = b"".join(chunks)

        for n, order in enumerate(itertools.permutations(range(3))):
            name = f"perm-{n}.zip"
            results = await _send(assembler, name, chunks, [*order, 3])
            assert results[-1].final_path.read_bytes() == expected

    @pytest.mark.asyncio
    async def test_reassembly_replaces_existing_archive(self, assembler):
        await _send(assembler, "pack.zip", [b"old"], [0])
        result = (await _send(assembler, "pack.zip", [b"new", b"er"], [0, 1]))[-1]
        assert result.final_path.read_bytes() == b"newer"


class TestResend:
    @pytest.mark.asyncio
    async def test_idempotent_resend(self, assembler):
        chunks = [b"aa", b"bb", b"cc"]
        results = await _send(assembler, "pack.zip", chunks, [0, 1, 1, 2])
        assert results[-1].final_path.read_bytes() == b"aabbcc"

    @pytest.mark.asyncio
    async def test_resend_with_different_bytes_last_write_wins(self, assembler):
        await assembler.receive_chunk("pack.zip", 0, 2, b"stale")
        await assembler.receive_chunk("pack.zip", 0, 2, b"fresh")
        result = await assembler.receive_chunk("pack.zip", 1, 2, b"!")
        assert result.final_path.read_bytes() == b"fresh!"


class TestCompletionTrigger:
    @pytest.mark.asyncio
    async def test_no_archive_until_last_index(self, assembler, resolver):
        await _send(assembler, "pack.zip", [b"a", b"b", b"c"], [0, 1])

        assert resolver.resolve("pack.zip") is None
        assert sorted(p.name for p in resolver.staging_dir("pack.zip").iterdir()) == ["0", "1"]

    @pytest.mark.asyncio
    async def test_missing_chunk_when_last_arrives_early(self, assembler, resolver):
        await assembler.receive_chunk("pack.zip", 0, 3, b"a")

        with pytest.raises(MissingChunk) as exc_info:
            await assembler.receive_chunk("pack.zip", 2, 3, b"c")

        assert exc_info.value.chunk_index == 1
        assert resolver.resolve("pack.zip") is None
        # Staged chunks survive so the client can fill the gap
        assert sorted(p.name for p in resolver.staging_dir("pack.zip").iterdir()) == ["0", "2"]

    @pytest.mark.asyncio
    async def test_gap_can_be_filled_after_missing_chunk(self, assembler):
        await assembler.receive_chunk("pack.zip", 0, 3, b"a")
        with pytest.raises(MissingChunk):
            await assembler.receive_chunk("pack.zip", 2, 3, b"c")

        assert (await assembler.receive_chunk("pack.zip", 1, 3, b"b")).status == "pending"
        result = await assembler.receive_chunk("pack.zip", 2, 3, b"c")
        assert result.final_path.read_bytes() == b"abc"


class TestValidation:
    @pytest.mark.parametrize(
        ("chunk_index", "total_chunks"),
        [(3, 3), (-1, 3), (0, 0), (0, -2)],
    )
    @pytest.mark.asyncio
    async def test_invalid_chunk_range(self, assembler, resolver, chunk_index, total_chunks):
        with pytest.raises(InvalidChunkRange):
            await assembler.receive_chunk("pack.zip", chunk_index, total_chunks, b"x")
        assert not resolver.staging_dir("pack.zip").exists()

    @pytest.mark.asyncio
    async def test_invalid_filename(self, assembler):
        with pytest.raises(InvalidFilename):
            await assembler.receive_chunk("../pack.zip", 0, 1, b"x")

    @pytest.mark.asyncio
    async def test_write_failure_is_reported(self, assembler, resolver):
        # A regular file where the staging directory should go
        resolver.staging_dir("pack.zip").write_bytes(b"")

        with pytest.raises(StorageWriteFailure):
            await assembler.receive_chunk("pack.zip", 0, 2, b"x")


class TestSweepStaging:
    def _age(self, directory, seconds_ago, now):
        stamp = now - seconds_ago
        for child in directory.iterdir():
            os.utime(child, (stamp, stamp))
        os.utime(directory, (stamp, stamp))

    @pytest.mark.asyncio
    async def test_removes_only_stale_directories(self, assembler, resolver):
        await assembler.receive_chunk("old.zip", 0, 2, b"x")
        await assembler.receive_chunk("new.zip", 0, 2, b"x")
        now = 1_000_000_000.0
        self._age(resolver.staging_dir("old.zip"), 7200, now)
        self._age(resolver.staging_dir("new.zip"), 60, now)

        removed = await assembler.sweep_staging(3600, now=now)

        assert removed == ["old.zip"]
        assert not resolver.staging_dir("old.zip").exists()
        assert resolver.staging_dir("new.zip").exists()

    @pytest.mark.asyncio
    async def test_empty_staging_root(self, assembler):
        assert await assembler.sweep_staging(0) == []
