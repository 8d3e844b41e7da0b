"""Unit tests for the file-dependent operation cache."""

import pytest

from mcp_project_cache.cache.models import CompileCheckRecord, Diagnostic, StyleCheckRecord, TestRunRecord
from mcp_project_cache.cache.operation_cache import OperationCache


@pytest.fixture
def operations(store, fingerprints) -> OperationCache:
    return OperationCache(store, fingerprints)


async def record_for(fingerprints, *paths, record_cls=CompileCheckRecord, **fields):
    hashes = {str(path): await fingerprints.hash(str(path)) for path in paths}
    return record_cls(success=True, file_fingerprints=hashes, **fields)


class TestOperationValidity:
    """A record is valid exactly while every recorded file is unchanged."""

    @pytest.mark.asyncio
    async def test_untouched_file_is_valid(self, operations, fingerprints, tmp_path):
        """A record stays valid while its files are unchanged."""
        path = tmp_path / "a.ts"
        path.write_text("let a = 1;")
        record = await record_for(fingerprints, path)

        assert await operations.is_valid(record)

    @pytest.mark.asyncio
    async def test_modified_file_is_invalid(self, operations, fingerprints, tmp_path, modify):
        """Editing a dependency invalidates the record."""
        path = tmp_path / "a.ts"
        path.write_text("let a = 1;")
        record = await record_for(fingerprints, path)

        modify(path, "let a = 2;")

        assert not await operations.is_valid(record)
        result = await operations.check(record)
        assert [change.reason for change in result.changed] == ["content"]

    @pytest.mark.asyncio
    async def test_deleted_file_is_invalid(self, operations, fingerprints, tmp_path):
        """Deleting a dependency invalidates the record."""
        path = tmp_path / "a.ts"
        path.write_text("x")
        record = await record_for(fingerprints, path)

        path.unlink()

        assert not await operations.is_valid(record)

    @pytest.mark.asyncio
    async def test_record_without_fingerprints_is_invalid(self, operations):
        """None and untyped records are never valid."""
        assert not await operations.is_valid(None)
        assert not await operations.is_valid({"success": True})

    @pytest.mark.asyncio
    async def test_empty_input_set_is_valid(self, operations):
        """A record with no dependencies is valid."""
        record = CompileCheckRecord(success=True)

        assert await operations.is_valid(record)

    @pytest.mark.asyncio
    async def test_validation_error_means_invalid(self, operations, fingerprints, tmp_path, monkeypatch):
        """Errors during comparison make the record invalid."""
        path = tmp_path / "a.ts"
        path.write_text("x")
        record = await record_for(fingerprints, path)

        async def broken(expected):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(fingerprints, "compare_with_expected", broken)

        assert not await operations.is_valid(record)


class TestOperationStorage:

    @pytest.mark.asyncio
    async def test_put_then_get_raw(self, operations, store):
        """Stored records come back unchanged."""
        record = CompileCheckRecord(
            success=False,
            raw_output="src/a.ts(1,1): error TS1005: ';' expected.",
            diagnostics=[Diagnostic(file="src/a.ts", line=1, column=1, rule="TS1005", message="';' expected.")],
            file_fingerprints={"/w/src/a.ts": "abc"},
        )

        assert operations.put("compile", "a.ts,tsconfig.json", record)

        assert store.has("operation:compile:a.ts,tsconfig.json")
        assert operations.get_raw("compile", "a.ts,tsconfig.json") == record
        assert operations.get_raw("compile", "other") is None

    def test_build_key_is_order_independent(self):
        """Input order does not affect the key."""
        first = OperationCache.build_key(["/w/src/b.ts", "/w/src/a.ts"], ["/w/tsconfig.json"])
        second = OperationCache.build_key(["/w/src/a.ts", "/w/src/b.ts"], ["/w/tsconfig.json"])

        assert first == second == "a.ts,b.ts,tsconfig.json"

    def test_build_key_for_no_inputs(self):
        """No inputs give an empty key."""
        assert OperationCache.build_key([]) == ""

    def test_clear_type_and_summary(self, operations):
        """Clearing one type leaves the others in the summary."""
        operations.put("compile", "k", CompileCheckRecord(success=True))
        operations.put("style", "src:a.ts", StyleCheckRecord(success=True, file_path="src/a.ts"))
        operations.put("style", "src:b.ts", StyleCheckRecord(success=True, file_path="src/b.ts"))
        operations.put("test", "k", TestRunRecord(success=True))

        assert operations.summary() == {"compile": 1, "style": 2, "test": 1}
        assert operations.clear_type("style") == 2
        assert operations.summary() == {"compile": 1, "test": 1}

    def test_type_stats_proportional(self, operations, store):
        """Per-type stats split hits proportionally."""
        operations.put("compile", "k", CompileCheckRecord(success=True))
        operations.put("test", "k", TestRunRecord(success=True))
        store.get("operation:compile:k")
        store.get("operation:test:k")

        assert operations.type_stats("compile") == {"hits": 1, "misses": 0}


    def test_serialized_record_is_parsed_by_op_type(self, operations, store):
        """A record stored as JSON-mode data comes back as its typed variant."""
        record = TestRunRecord(success=False, passed=3, failed=1, file_fingerprints={"/w/a.test.ts": "abc"})
        store.set("operation:test:k", record.model_dump(mode="json"))

        restored = operations.get_raw("test", "k")

        assert isinstance(restored, TestRunRecord)
        assert restored == record

    def test_malformed_serialized_record_is_a_miss(self, operations, store):
        """Data with an unknown op_type is treated as absent."""
        store.set("operation:test:k", {"op_type": "coverage", "success": True})

        assert operations.get_raw("test", "k") is None

class TestInvalidateByPaths:
    """Eager invalidation from change notifications."""

    @pytest.mark.asyncio
    async def test_removes_exactly_dependent_records(self, operations, fingerprints, store, tmp_path):
        """Only records depending on a changed path are removed."""
        a = tmp_path / "a.ts"
        b = tmp_path / "b.ts"
        a.write_text("a")
        b.write_text("b")

        operations.put("compile", "ab", await record_for(fingerprints, a, b))
        operations.put("style", "a", await record_for(fingerprints, a, record_cls=StyleCheckRecord))
        operations.put("style", "b", await record_for(fingerprints, b, record_cls=StyleCheckRecord))
        hits_before = store.stats().hits

        removed = operations.invalidate_by_paths([str(a)])

        assert removed == 2
        assert operations.get_raw("style", "b") is not None
        assert operations.get_raw("compile", "ab") is None
        assert operations.get_raw("style", "a") is None
        assert store.stats().hits - hits_before == 1

    @pytest.mark.asyncio
    async def test_drops_fingerprint_entries(self, operations, fingerprints, store, tmp_path):
        """Changed paths also lose their cached fingerprints."""
        a = tmp_path / "a.ts"
        a.write_text("a")
        await fingerprints.get(str(a))

        operations.invalidate_by_paths([str(a)])

        assert not store.has(f"metadata:{a}")

    def test_serialized_records_are_invalidated(self, operations, store):
        """Dependants stored as plain data are swept like typed records."""
        record = StyleCheckRecord(success=True, file_path="a.ts", file_fingerprints={"/w/a.ts": "abc"})
        store.set("operation:style:a.ts", record.model_dump(mode="json"))

        assert operations.invalidate_by_paths(["/w/a.ts"]) == 1
        assert not store.has("operation:style:a.ts")

    def test_empty_change_set(self, operations):
        """No paths, nothing removed."""
        assert operations.invalidate_by_paths([]) == 0
