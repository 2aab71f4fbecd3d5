import io
import json
import os
import subprocess
import zipfile
from unittest import mock

import pytest

from funchost.manager import (
    GO_MOD_TEMPLATE,
    BuildError,
    FunctionManager,
    FunctionNotFoundError,
    IllegalPathError,
    build_function,
    build_wasm_function,
    ensure_go_mod,
    find_main_go_dir,
    unzip,
)


def _zip_bytes(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _completed(args, returncode, output=b""):
    return subprocess.CompletedProcess(args, returncode, stdout=output)


def test_register_binary_and_get(tmp_path):
    manager = FunctionManager(str(tmp_path))
    fn = manager.register("hello", io.BytesIO(b"\x7fELF"), "v1", ".bin")
    assert manager.get(fn.id) is fn
    assert fn.name == "hello"
    assert fn.version == "v1"
    assert fn.wasm_path == ""
    with open(fn.bin_path, "rb") as handle:
        assert handle.read() == b"\x7fELF"


def test_register_writes_meta_json(tmp_path):
    manager = FunctionManager(str(tmp_path))
    fn = manager.register("hello", io.BytesIO(b"data"), "v1", ".bin")
    meta = os.path.join(os.path.dirname(fn.bin_path), "meta.json")
    with open(meta, encoding="utf-8") as handle:
        data = json.load(handle)
    assert data["id"] == fn.id
    assert data["binPath"] == fn.bin_path


def test_list_returns_all(tmp_path):
    manager = FunctionManager(str(tmp_path))
    first = manager.register("a", io.BytesIO(b"1"), "v1", ".bin")
    second = manager.register("b", io.BytesIO(b"2"), "v1", ".bin")
    assert {fn.id for fn in manager.list()} == {first.id, second.id}


def test_get_unknown_raises(tmp_path):
    with pytest.raises(FunctionNotFoundError):
        FunctionManager(str(tmp_path)).get("missing")


def test_delete_removes_directory_and_entry(tmp_path):
    manager = FunctionManager(str(tmp_path))
    fn = manager.register("hello", io.BytesIO(b"x"), "v1", ".bin")
    directory = os.path.dirname(fn.bin_path)
    manager.delete(fn.id)
    assert not os.path.exists(directory)
    with pytest.raises(FunctionNotFoundError):
        manager.get(fn.id)
    with pytest.raises(FunctionNotFoundError):
        manager.delete(fn.id)


def test_load_all_restores_registered_functions(tmp_path):
    original = FunctionManager(str(tmp_path))
    fn = original.register("hello", io.BytesIO(b"x"), "v1", ".bin")
    restored = FunctionManager(str(tmp_path))
    assert restored.load_all() == 1
    loaded = restored.get(fn.id)
    assert loaded.name == fn.name
    assert loaded.bin_path == fn.bin_path
    assert loaded.created_at == fn.created_at
    assert loaded.wasm_path == ""


def test_load_all_picks_up_wasm_and_skips_incomplete(tmp_path):
    original = FunctionManager(str(tmp_path))
    fn = original.register("hello", io.BytesIO(b"x"), "v1", ".bin")
    directory = os.path.dirname(fn.bin_path)
    wasm = os.path.join(directory, "main.wasm")
    open(wasm, "wb").close()
    os.makedirs(tmp_path / "other" / "v2")
    (tmp_path / "other" / "v2" / "main.bin").write_bytes(b"x")
    (tmp_path / "broken" / "v3").mkdir(parents=True)
    (tmp_path / "broken" / "v3" / "main.bin").write_bytes(b"x")
    (tmp_path / "broken" / "v3" / "meta.json").write_text("{not json")
    restored = FunctionManager(str(tmp_path))
    assert restored.load_all() == 1
    assert restored.get(fn.id).wasm_path == wasm


def test_load_all_missing_base_dir(tmp_path):
    manager = FunctionManager(str(tmp_path / "absent"))
    assert manager.load_all() == 0
    assert manager.list() == []


def test_unzip_extracts_files(tmp_path):
    archive = tmp_path / "src.zip"
    archive.write_bytes(_zip_bytes({"sub/": "", "sub/main.go": "package main\n"}))
    dest = tmp_path / "out"
    dest.mkdir()
    unzip(str(archive), str(dest))
    assert (dest / "sub" / "main.go").read_text() == "package main\n"


def test_unzip_rejects_escaping_paths(tmp_path):
    archive = tmp_path / "src.zip"
    archive.write_bytes(_zip_bytes({"../evil.txt": "x"}))
    dest = tmp_path / "out"
    dest.mkdir()
    with pytest.raises(IllegalPathError, match="illegal file path in zip"):
        unzip(str(archive), str(dest))
    assert not (tmp_path / "evil.txt").exists()


def test_find_main_go_dir(tmp_path):
    (tmp_path / "app" / "cmd").mkdir(parents=True)
    (tmp_path / "app" / "cmd" / "main.go").write_text("package main\n")
    assert find_main_go_dir(str(tmp_path)) == str(tmp_path / "app" / "cmd")


def test_find_main_go_dir_missing(tmp_path):
    (tmp_path / "lib.go").write_text("package lib\n")
    with pytest.raises(FileNotFoundError, match="main.go not found in zip"):
        find_main_go_dir(str(tmp_path))


def test_ensure_go_mod_creates_and_keeps(tmp_path):
    path = ensure_go_mod(str(tmp_path))
    assert (tmp_path / "go.mod").read_text() == GO_MOD_TEMPLATE
    (tmp_path / "go.mod").write_text("module custom\n")
    assert ensure_go_mod(str(tmp_path)) == path
    assert (tmp_path / "go.mod").read_text() == "module custom\n"


@mock.patch("subprocess.run")
def test_build_function_download_failure(run, tmp_path):
    run.return_value = _completed([], 1, b"boom")
    with pytest.raises(BuildError, match="^go mod download failed: ") as caught:
        build_function(str(tmp_path), str(tmp_path / "main.bin"))
    assert "boom" in str(caught.value)


@mock.patch("subprocess.run", side_effect=FileNotFoundError("no such tool"))
def test_build_wasm_missing_tool(run, tmp_path):
    with pytest.raises(BuildError, match="^tinygo build wasm error: "):
        build_wasm_function(str(tmp_path), str(tmp_path / "main.wasm"))


def test_register_zip_builds_and_tolerates_wasm_failure(tmp_path):
    calls = []

    def fake_run(args, **kwargs):
        calls.append((args, kwargs.get("cwd")))
        return _completed(args, 1 if args[0] == "tinygo" else 0)

    manager = FunctionManager(str(tmp_path))
    payload = _zip_bytes({"app/main.go": "package main\n"})
    with mock.patch("subprocess.run", side_effect=fake_run):
        fn = manager.register("hello", io.BytesIO(payload), "v1", ".zip")
    app_dir = str(tmp_path / "hello" / "v1" / "app")
    assert fn.wasm_path == ""
    assert os.path.isabs(fn.bin_path)
    assert os.path.basename(fn.bin_path) == "main.bin"
    assert os.path.exists(os.path.join(app_dir, "go.mod"))
    assert (["go", "mod", "download"], app_dir) in calls
    assert manager.get(fn.id) is fn


def test_register_go_source_tidy_failure(tmp_path):
    manager = FunctionManager(str(tmp_path))
    with mock.patch("subprocess.run", return_value=_completed([], 1, b"bad")):
        with pytest.raises(BuildError, match="^go mod tidy error: "):
            manager.register("hello", io.BytesIO(b"package main\n"), "v1", ".go")
    assert (tmp_path / "hello" / "v1" / "go.mod").read_text() == GO_MOD_TEMPLATE
    assert manager.list() == []