"""Tests for HandleAdapter over the in-memory handle tree."""

from __future__ import annotations

from dataclasses import replace

import pytest

from unifs.fs.exceptions import (
    InvalidHandleError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    UnsupportedOperationError,
)
from unifs.fs.handle_fs import HandleAdapter
from unifs.fs.handles import MemoryDirectoryHandle
from unifs.fs.permissions import AccessMode, PermissionState
from unifs.fs.types import EntryKind, HandleCapability, PathCapability

# ---------------------------------------------------------------------------
# Entries & listing
# ---------------------------------------------------------------------------


class TestEntries:
    async def test_pick_directory_uses_picker(self, handles, memory_root):
        root = await handles.pick_directory()
        assert root.name == "project"
        assert root.path == "project"
        assert root.capability.ref == memory_root

    async def test_pick_without_picker_unsupported(self):
        with pytest.raises(UnsupportedOperationError):
            await HandleAdapter().pick_directory()

    async def test_child_paths_are_rooted_at_handle_name(self, handles, handle_root):
        docs = await handles.mkdir(handle_root, "docs")
        note = await handles.write_text(docs, "note.md", "hi")
        assert docs.path == "project/docs"
        assert note.path == "project/docs/note.md"

    async def test_list_sorted(self, handles, handle_root):
        await handles.write_text(handle_root, "b.txt", "b")
        await handles.write_text(handle_root, "a.txt", "a")
        await handles.mkdir(handle_root, "zeta")
        names = [e.name for e in await handles.list(handle_root)]
        assert names == ["zeta", "a.txt", "b.txt"]

    async def test_path_capability_rejected(self, handles, handle_root):
        with pytest.raises(InvalidHandleError):
            await handles.list(replace(handle_root, capability=PathCapability()))

    async def test_file_entry_is_not_a_directory(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "hi")
        with pytest.raises(InvalidHandleError):
            await handles.list(note)

    async def test_stale_directory_handle(self, handles, handle_root):
        sub = await handles.mkdir(handle_root, "sub")
        await handles.remove(sub, handle_root)
        with pytest.raises(NotFoundError):
            await handles.list(sub)

    async def test_stat_removed_directory(self, handles, handle_root):
        sub = await handles.mkdir(handle_root, "sub")
        await handles.remove(sub, handle_root)
        with pytest.raises(NotFoundError):
            await handles.stat(sub)

    async def test_stat_directory_with_file_handle(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "hi")
        forged = replace(handle_root, capability=HandleCapability(note.capability.ref))
        with pytest.raises(InvalidHandleError):
            await handles.stat(forged)

    async def test_stat(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "hello")
        st = await handles.stat(note)
        assert st.kind is EntryKind.FILE
        assert st.size == 5
        assert st.modified > 0
        assert (await handles.stat(handle_root)).kind is EntryKind.DIRECTORY

    async def test_stat_mime_type(self, handles, handle_root):
        data = await handles.write_text(handle_root, "data.json", "{}")
        assert (await handles.stat(data)).mime_type == "application/json"
        assert (await handles.stat(handle_root)).mime_type is None


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


class TestPermissions:
    async def test_write_prompts_once(self, handles, handle_root, memory_root):
        await handles.write_text(handle_root, "a.txt", "a")
        await handles.write_text(handle_root, "b.txt", "b")
        await handles.mkdir(handle_root, "dir")
        assert memory_root.prompt_count == 1
        assert await memory_root.query_permission(AccessMode.READ_WRITE) is PermissionState.GRANTED

    async def test_refused_prompt_raises(self):
        root = MemoryDirectoryHandle.create_root("locked", prompt=lambda mode: False)
        adapter = HandleAdapter()
        entry = adapter.entry_for_handle(root)

        with pytest.raises(PermissionDeniedError) as exc_info:
            await adapter.write_text(entry, "a.txt", "a")

        assert exc_info.value.remedy
        assert [e async for e in root.entries()] == []

    async def test_async_prompt(self):
        answers: list[AccessMode] = []

        async def prompt(mode: AccessMode) -> bool:
            answers.append(mode)
            return True

        root = MemoryDirectoryHandle.create_root("p", prompt=prompt)
        adapter = HandleAdapter()
        await adapter.mkdir(adapter.entry_for_handle(root), "made")
        assert answers == [AccessMode.READ_WRITE]

    @pytest.mark.parametrize("operation", ["mkdir", "remove"])
    async def test_denied_grant_blocks_writes(self, operation):
        root = MemoryDirectoryHandle.create_root(
            "ro", read_write=PermissionState.DENIED
        )
        adapter = HandleAdapter()
        entry = adapter.entry_for_handle(root)
        with pytest.raises(PermissionDeniedError):
            if operation == "mkdir":
                await adapter.mkdir(entry, "x")
            else:
                await adapter.remove(entry, entry)

    async def test_unreadable_directory(self):
        root = MemoryDirectoryHandle.create_root("hidden", read=PermissionState.DENIED)
        adapter = HandleAdapter()
        with pytest.raises(PermissionDeniedError):
            await adapter.list(adapter.entry_for_handle(root))


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------


class TestReadWrite:
    async def test_round_trip(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "héllo\n")
        assert await handles.read_text(note) == "héllo\n"
        assert await handles.get_blob(note) == "héllo\n".encode()

    async def test_overwrite(self, handles, handle_root):
        await handles.write_text(handle_root, "note.md", "v1")
        note = await handles.write_text(handle_root, "note.md", "v2")
        assert await handles.read_text(note) == "v2"

    async def test_invalid_utf8(self):
        root = MemoryDirectoryHandle.create_root("r", read_write=PermissionState.GRANTED)
        fh = await root.get_file_handle("bad.txt", create=True)
        writable = await fh.create_writable()
        await writable.write(b"\xff\xfe")
        await writable.close()

        adapter = HandleAdapter()
        [entry] = await adapter.list(adapter.entry_for_handle(root))
        with pytest.raises(StorageError):
            await adapter.read_text(entry)

    async def test_mkdir_idempotent(self, handles, handle_root):
        first = await handles.mkdir(handle_root, "docs")
        second = await handles.mkdir(handle_root, "docs")
        assert first == second

    async def test_mkdir_over_file(self, handles, handle_root):
        await handles.write_text(handle_root, "docs", "x")
        with pytest.raises(InvalidHandleError):
            await handles.mkdir(handle_root, "docs")

    async def test_invalid_name(self, handles, handle_root):
        with pytest.raises(StorageError):
            await handles.write_text(handle_root, "a/b.txt", "x")


# ---------------------------------------------------------------------------
# remove / copy / move
# ---------------------------------------------------------------------------


class TestRemove:
    async def test_remove_needs_parent(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "x")
        with pytest.raises(InvalidHandleError):
            await handles.remove(note)
        assert [e.name for e in await handles.list(handle_root)] == ["note.md"]

    async def test_remove_directory_recursively(self, handles, handle_root):
        docs = await handles.mkdir(handle_root, "docs")
        await handles.write_text(docs, "a.md", "a")
        await handles.remove(docs, handle_root)
        assert await handles.list(handle_root) == []


class TestCopy:
    async def test_copy_file(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "content")
        out = await handles.mkdir(handle_root, "out")
        copied = await handles.copy(note, out)
        assert copied.path == "project/out/note.md"
        assert await handles.read_text(copied) == "content"

    async def test_copy_directory_is_byte_identical(self, handles, handle_root):
        src = await handles.mkdir(handle_root, "src")
        deep = await handles.mkdir(src, "deep")
        await handles.write_text(src, "a.md", "a")
        await handles.write_text(deep, "b.md", "b")
        await handles._write_bytes(deep, "c.bin", b"\x00\xff\x10")
        out = await handles.mkdir(handle_root, "out")

        copied = await handles.copy(src, out, new_name="clone")

        tree = await handles.build_tree(copied)
        assert [e.name for e in tree] == ["deep", "a.md"]
        deep_copy = tree[0]
        blobs = {e.name: await handles.get_blob(e) for e in deep_copy.children}
        assert blobs == {"b.md": b"b", "c.bin": b"\x00\xff\x10"}

    async def test_copy_into_itself_refused(self, handles, handle_root):
        src = await handles.mkdir(handle_root, "src")
        inner = await handles.mkdir(src, "inner")
        with pytest.raises(StorageError):
            await handles.copy(src, inner)

    async def test_copy_file_onto_directory_name_refused(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "content")
        sub = await handles.mkdir(handle_root, "sub")
        with pytest.raises(StorageError):
            await handles.copy(note, handle_root, new_name="sub")
        assert await handles.list(sub) == []


class TestMove:
    async def test_native_move_within_root(self, handles, handle_root):
        note = await handles.write_text(handle_root, "note.md", "content")
        out = await handles.mkdir(handle_root, "out")

        moved = await handles.move(note, out, new_name="renamed.md")

        assert moved.path == "project/out/renamed.md"
        assert [e.name for e in await handles.list(handle_root)] == ["out"]
        assert [e.name for e in await handles.list(out)] == ["renamed.md"]
        assert await handles.read_text(moved) == "content"

    async def test_cross_root_move_needs_source_parent(self, handles, handle_root):
        other = MemoryDirectoryHandle.create_root("other")
        note = await handles.write_text(handle_root, "note.md", "content")
        with pytest.raises(InvalidHandleError):
            await handles.move(note, handles.entry_for_handle(other))
        assert [e.name for e in await handles.list(handle_root)] == ["note.md"]

    async def test_cross_root_move_falls_back_to_copy(self, handles, handle_root):
        other = MemoryDirectoryHandle.create_root("other")
        other_root = handles.entry_for_handle(other)
        note = await handles.write_text(handle_root, "note.md", "content")

        moved = await handles.move(note, other_root, source_parent=handle_root)

        assert moved.path == "other/note.md"
        assert await handles.list(handle_root) == []
        assert await handles.read_text(moved) == "content"
