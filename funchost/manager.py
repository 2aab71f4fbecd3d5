"""Registration, storage and building of deployed functions."""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import threading
import uuid
import zipfile
from datetime import datetime
from typing import BinaryIO

from .model import Function
from .util import copy_file, info

GO_MOD_TEMPLATE = "module example.com/tmpmod\n\ngo 1.20\n"


class FunctionNotFoundError(LookupError):
    """Raised when no function is registered under an id."""

    def __init__(self, function_id: str) -> None:
        super().__init__("function not found")
        self.function_id = function_id


class BuildError(RuntimeError):
    """Raised when a toolchain step fails."""


class IllegalPathError(ValueError):
    """Raised when an archive entry would escape its target directory."""


def _run(args: list[str], cwd: str | None = None, **env: str) -> tuple[str | None, str]:
    """Run a command; return (failure description or None, combined output)."""
    environ = {**os.environ, **env}
    try:
        proc = subprocess.run(
            args,
            cwd=cwd,
            env=environ,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except OSError as exc:
        return str(exc), ""
    output = (proc.stdout or b"").decode(errors="replace")
    if proc.returncode != 0:
        return f"exit status {proc.returncode}", output
    return None, output


def unzip(zip_path: str, dest_dir: str) -> None:
    """Extract an archive into dest_dir, refusing entries that leave it."""
    root = os.path.normpath(dest_dir) + os.sep
    with zipfile.ZipFile(zip_path) as archive:
        for entry in archive.infolist():
            target = os.path.normpath(os.path.join(dest_dir, entry.filename))
            if not target.startswith(root):
                raise IllegalPathError("illegal file path in zip: " + target)
            mode = (entry.external_attr >> 16) & 0o777
            if entry.is_dir():
                os.makedirs(target, exist_ok=True)
                continue
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with archive.open(entry) as src, open(target, "wb") as dst:
                copy_file(src, dst)
            if mode:
                os.chmod(target, mode)


def _walk_sorted(directory: str):
    """Yield (path, is_dir) depth-first, entries in lexical order."""
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if os.path.isdir(path):
            yield path, True
            yield from _walk_sorted(path)
        else:
            yield path, False


def find_main_go_dir(root: str) -> str:
    """Return the directory of the first main.go found under root."""
    for path, is_dir in _walk_sorted(root):
        if not is_dir and os.path.basename(path) == "main.go":
            return os.path.dirname(path)
    raise FileNotFoundError("main.go not found in zip")


def ensure_go_mod(directory: str) -> str:
    """Create a minimal go.mod in directory unless one exists; return its path."""
    path = os.path.join(directory, "go.mod")
    if not os.path.exists(path):
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(GO_MOD_TEMPLATE)
    return path


def build_function(main_dir: str, bin_path: str) -> None:
    """Download modules and build the native binary for main_dir."""
    failure, output = _run(["go", "mod", "download"], cwd=main_dir)
    if failure:
        raise BuildError(f"go mod download failed: {failure}\n{output}")
    failure, output = _run(
        ["go", "build", "-o", bin_path, "."], cwd=main_dir, GO111MODULE="on"
    )
    if failure:
        raise BuildError(f"build failed: {failure}\n{output}")


def build_wasm_function(main_dir: str, wasm_path: str) -> None:
    """Build a WASI module for main_dir with tinygo."""
    failure, output = _run(
        ["tinygo", "build", "-o", wasm_path, "-target=wasi", "."],
        cwd=main_dir,
        GO111MODULE="on",
    )
    if failure:
        raise BuildError(f"tinygo build wasm error: {failure}\n{output}")


def _try_build_wasm(main_dir: str, wasm_path: str) -> str:
    """Build the wasm artefact; a failure is logged and yields an empty path."""
    try:
        build_wasm_function(main_dir, wasm_path)
    except BuildError as exc:
        info("tinygo build wasm error: %s", exc)
        return ""
    return wasm_path


class FunctionManager:
    """Keeps registered functions in memory and their artefacts on disk."""

    def __init__(self, base_dir: str = "functions") -> None:
        self.base_dir = base_dir
        self._functions: dict[str, Function] = {}
        self._lock = threading.RLock()

    def list(self) -> list[Function]:
        """Return every registered function."""
        with self._lock:
            return list(self._functions.values())

    def get(self, function_id: str) -> Function:
        """Return the function with this id."""
        with self._lock:
            try:
                return self._functions[function_id]
            except KeyError:
                raise FunctionNotFoundError(function_id) from None

    def delete(self, function_id: str) -> None:
        """Remove a function and the directory holding its artefacts."""
        with self._lock:
            fn = self._functions.get(function_id)
            if fn is None:
                raise FunctionNotFoundError(function_id)
            directory = os.path.dirname(fn.bin_path)
            if os.path.lexists(directory):
                shutil.rmtree(directory)
            del self._functions[function_id]

    def register(
        self, name: str, stream: BinaryIO, version: str, ext: str
    ) -> Function:
        """Store an upload, build it if it is source, and record it."""
        function_id = str(uuid.uuid4())
        fn_dir = os.path.join(self.base_dir, name, version)
        os.makedirs(fn_dir, exist_ok=True)
        wasm_path = ""

        if ext == ".zip":
            zip_path = os.path.join(fn_dir, "src.zip")
            with open(zip_path, "wb") as out:
                copy_file(stream, out)
            unzip(zip_path, fn_dir)
            main_dir = find_main_go_dir(fn_dir)
            ensure_go_mod(main_dir)
            abs_dir = os.path.abspath(fn_dir)
            bin_path = os.path.join(abs_dir, "main.bin")
            build_function(main_dir, bin_path)
            wasm_path = _try_build_wasm(main_dir, os.path.join(abs_dir, "main.wasm"))
        elif ext == ".go":
            src_path = os.path.join(fn_dir, "main.go")
            with open(src_path, "wb") as out:
                copy_file(stream, out)
            ensure_go_mod(fn_dir)
            failure, output = _run(
                ["go", "mod", "tidy"], cwd=fn_dir, GOOS="linux", GOARCH="amd64"
            )
            if failure:
                raise BuildError("go mod tidy error: " + (output or failure))
            abs_dir = os.path.abspath(fn_dir)
            bin_path = os.path.join(abs_dir, "main.bin")
            failure, output = _run(
                ["go", "build", "-o", bin_path, "main.go"],
                cwd=fn_dir,
                GO111MODULE="on",
            )
            if failure:
                raise BuildError("go build error: " + (output or failure))
            wasm_path = _try_build_wasm(fn_dir, os.path.join(abs_dir, "main.wasm"))
        else:
            bin_path = os.path.join(fn_dir, "main.bin")
            with open(bin_path, "wb") as out:
                copy_file(stream, out)

        fn = Function(
            id=function_id,
            version=version,
            name=name,
            bin_path=bin_path,
            wasm_path=wasm_path,
            description="",
            created_at=datetime.now().astimezone(),
        )
        self.save_meta(fn)
        with self._lock:
            self._functions[function_id] = fn
        return fn

    def save_meta(self, fn: Function) -> None:
        """Write meta.json next to the function's binary."""
        with self._lock:
            meta_path = os.path.join(os.path.dirname(fn.bin_path), "meta.json")
            with open(meta_path, "w", encoding="utf-8") as handle:
                json.dump(fn.to_dict(), handle, indent=2, ensure_ascii=False)

    def load_all(self) -> int:
        """Load every stored function under base_dir; return how many loaded."""
        with self._lock:
            try:
                names = sorted(os.listdir(self.base_dir))
            except FileNotFoundError:
                return 0
            loaded = 0
            for name in names:
                name_dir = os.path.join(self.base_dir, name)
                if not os.path.isdir(name_dir):
                    continue
                for version in sorted(os.listdir(name_dir)):
                    fn_dir = os.path.join(name_dir, version)
                    if not os.path.isdir(fn_dir):
                        continue
                    fn = self._load_one(fn_dir)
                    if fn is not None:
                        self._functions[fn.id] = fn
                        loaded += 1
            return loaded

    @staticmethod
    def _load_one(fn_dir: str) -> Function | None:
        meta_path = os.path.join(fn_dir, "meta.json")
        bin_path = os.path.join(fn_dir, "main.bin")
        wasm_path = os.path.join(fn_dir, "main.wasm")
        if not os.path.exists(bin_path) or not os.path.exists(meta_path):
            return None
        try:
            with open(meta_path, encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                return None
            fn = Function.from_dict(data)
        except (OSError, ValueError, TypeError):
            return None
        fn.bin_path = bin_path
        if os.path.exists(wasm_path):
            fn.wasm_path = wasm_path
        return fn