import asyncio
import json

import pytest

from conftest import release_url

from kiln.exceptions import (
    CollectionExistsError,
    CollectionNotFoundError,
    CorruptArchiveError,
    DuplicateModError,
    FileConflictError,
    ModNotFoundError,
    RegistryModNotFoundError,
)
from kiln.models import DirectMod, RegistryMod, TransferDescriptor


def record(orchestrator, name):
    return json.loads(orchestrator.store.record_path(name).read_text())


def test_add_pins_latest_version(orchestrator):
    orchestrator.new_collection("Test")
    added = asyncio.run(orchestrator.add_mod("Test", RegistryMod("foo")))

    assert added.version == "2.0.1"
    assert record(orchestrator, "Test")["mods"] == [{"id": "foo", "version": "2.0.1"}]
    assert (orchestrator.store.mods_dir("Test") / "foo_2.0.1.zip").exists()


def test_add_pinned_version(orchestrator):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.1")))
    assert record(orchestrator, "Test")["mods"] == [{"id": "abc", "version": "1.1"}]


def test_add_duplicate(orchestrator, registry):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    before = record(orchestrator, "Test")
    registry.fetches.clear()

    with pytest.raises(DuplicateModError):
        asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc")))

    assert record(orchestrator, "Test") == before
    assert registry.fetches == []


def test_add_direct_mod_named_like_registry_mod(orchestrator, registry):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc")))
    before = record(orchestrator, "Test")
    registry.fetches.clear()

    with pytest.raises(DuplicateModError):
        asyncio.run(orchestrator.add_mod("Test", DirectMod("abc", "https://example.com/a.zip")))

    assert record(orchestrator, "Test") == before
    assert registry.fetches == []

    # the single entry stays removable, and its artifact goes with it
    orchestrator.remove_mod("Test", "abc")
    assert record(orchestrator, "Test")["mods"] == []
    assert list(orchestrator.store.mods_dir("Test").iterdir()) == []


def test_add_refuses_to_overwrite_another_mods_file(orchestrator, registry):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    artifact = orchestrator.store.mods_dir("Test") / "abc_1.2.zip"
    content = artifact.read_bytes()
    before = record(orchestrator, "Test")
    registry.fetches.clear()

    with pytest.raises(FileConflictError):
        asyncio.run(
            orchestrator.add_mod("Test", DirectMod("abc_1.2", "https://example.com/other.zip"))
        )

    assert registry.fetches == []
    assert artifact.read_bytes() == content
    assert record(orchestrator, "Test") == before


def test_add_failure_leaves_record(orchestrator):
    orchestrator.new_collection("Test")
    with pytest.raises(RegistryModNotFoundError):
        asyncio.run(orchestrator.add_mod("Test", RegistryMod("missing")))
    assert record(orchestrator, "Test")["mods"] == []


def test_add_to_missing_collection(orchestrator, registry):
    with pytest.raises(CollectionNotFoundError):
        asyncio.run(orchestrator.add_mod("nope", RegistryMod("abc")))
    assert registry.lookups == []


def test_remove(orchestrator):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    asyncio.run(orchestrator.add_mod("Test", DirectMod("extra", "https://example.com/e.zip")))
    mods_dir = orchestrator.store.mods_dir("Test")

    removed = orchestrator.remove_mod("Test", "abc")

    assert removed.identifier == "abc"
    assert record(orchestrator, "Test")["mods"] == [
        {"name": "extra", "source": "https://example.com/e.zip"}
    ]
    assert not (mods_dir / "abc_1.2.zip").exists()
    assert (mods_dir / "extra.zip").exists()


def test_remove_missing(orchestrator):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    before = orchestrator.store.record_path("Test").read_bytes()

    with pytest.raises(ModNotFoundError):
        orchestrator.remove_mod("Test", "nope")

    assert orchestrator.store.record_path("Test").read_bytes() == before


def test_export_delete_import(orchestrator, registry, tmp_path):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    asyncio.run(orchestrator.add_mod("Test", DirectMod("extra", "https://example.com/e.zip")))
    original = record(orchestrator, "Test")["mods"]

    path = asyncio.run(orchestrator.export_collection("Test", output=tmp_path / "Test.kiln"))
    orchestrator.delete_collection("Test")
    assert orchestrator.list_collections() == []

    report = asyncio.run(orchestrator.import_collection(path))

    assert report.failed == []
    assert report.state.name == "Test"
    assert record(orchestrator, "Test")["mods"] == original
    assert sorted(p.name for p in orchestrator.store.mods_dir("Test").iterdir()) == [
        "abc_1.2.zip",
        "extra.zip",
    ]


def test_import_keeps_only_resolved_mods(orchestrator, registry, tmp_path):
    orchestrator.new_collection("Test")
    for mod in (
        RegistryMod("abc", "1.2"),
        RegistryMod("foo"),
        DirectMod("extra", "https://example.com/e.zip"),
    ):
        asyncio.run(orchestrator.add_mod("Test", mod))
    path = asyncio.run(orchestrator.export_collection("Test", output=tmp_path / "Test.kiln"))

    registry.failing_urls.add(release_url("foo", "2.0.1"))
    registry.mods.pop("abc")

    report = asyncio.run(orchestrator.import_collection(path, name="Copy"))

    assert [o.reference.identifier for o in report.failed] == ["abc", "foo"]
    assert record(orchestrator, "Copy")["mods"] == [
        {"name": "extra", "source": "https://example.com/e.zip"}
    ]
    assert record(orchestrator, "Copy")["files"] == {"extra": "extra.zip"}


def test_import_refuses_existing_collection(orchestrator, registry, tmp_path):
    orchestrator.new_collection("Test")
    path = asyncio.run(orchestrator.export_collection("Test", output=tmp_path / "Test.kiln"))

    with pytest.raises(CollectionExistsError):
        asyncio.run(orchestrator.import_collection(path))
    assert registry.fetches == []


def test_import_corrupt_file(orchestrator, tmp_path):
    path = tmp_path / "bad.kiln"
    path.write_bytes(b"\x00" * 32)

    with pytest.raises(CorruptArchiveError):
        asyncio.run(orchestrator.import_collection(path))
    assert orchestrator.list_collections() == []


def test_export_default_path(orchestrator, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    orchestrator.new_collection("Test")
    path = asyncio.run(orchestrator.export_collection("Test"))
    assert path == tmp_path / "Test.kiln"
    assert path.exists()


def test_export_check_does_not_fetch(orchestrator, registry, tmp_path):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    registry.fetches.clear()
    registry.mods.pop("abc")

    path = asyncio.run(
        orchestrator.export_collection("Test", output=tmp_path / "Test.kiln", check=True)
    )

    assert path.exists()
    assert registry.fetches == []


def test_export_check_survives_unexpected_lookup_errors(orchestrator, registry, tmp_path):
    orchestrator.new_collection("Test")
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("abc", "1.2")))
    asyncio.run(orchestrator.add_mod("Test", RegistryMod("foo", "1.9")))

    async def broken(alias_or_id, version):
        raise ValueError("Expecting value: line 1 column 1 (char 0)")

    registry.resolve_version = broken

    path = asyncio.run(
        orchestrator.export_collection("Test", output=tmp_path / "Test.kiln", check=True)
    )
    assert path.exists()


def test_import_skips_mod_sharing_a_file(orchestrator):
    descriptor = TransferDescriptor(
        name="Test",
        mods=[RegistryMod("abc", "1.2"), DirectMod("abc_1.2", "https://example.com/other.zip")],
    )

    report = asyncio.run(orchestrator.import_descriptor(descriptor))

    assert [o.reference.identifier for o in report.resolved] == ["abc"]
    assert [o.reference.identifier for o in report.failed] == ["abc_1.2"]
    assert isinstance(report.failed[0].error, FileConflictError)
    assert record(orchestrator, "Test")["files"] == {"abc": "abc_1.2.zip"}
