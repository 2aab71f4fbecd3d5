"""HTTP interface for registering, listing, deleting and invoking functions."""

from __future__ import annotations

import argparse
import time

from flask import Flask, jsonify, request

from .invoker import invoke_function
from .manager import FunctionManager


def _extension(filename: str) -> str:
    """Return the lower-cased suffix from the last dot of the final path element."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot < 0:
        return ""
    return base[dot:].lower()


def create_app(manager: FunctionManager | None = None) -> Flask:
    """Build the web application around a function manager."""
    manager = manager if manager is not None else FunctionManager()
    app = Flask(__name__)
    app.json.sort_keys = False

    @app.post("/functions")
    def register_function():
        name = request.form.get("name", "")
        version = request.form.get("version", "")
        upload = request.files.get("file")
        if upload is None:
            return jsonify({"error": "file required"}), 400
        ext = _extension(upload.filename or "")
        if not version:
            version = f"v{int(time.time())}"
        try:
            fn = manager.register(name, upload.stream, version, ext)
        except Exception as exc:  # every failure is reported to the client
            return jsonify({"error": str(exc)}), 500
        return jsonify(fn.to_dict())

    @app.get("/functions")
    def list_functions():
        functions = manager.list()
        if not functions:
            return jsonify(None)
        return jsonify([fn.to_dict() for fn in functions])

    @app.get("/functions/<function_id>")
    def get_function(function_id: str):
        try:
            fn = manager.get(function_id)
        except LookupError:
            return jsonify({"error": "not found"}), 500
        return jsonify(fn.to_dict())

    @app.delete("/functions/<function_id>")
    def delete_function(function_id: str):
        try:
            manager.delete(function_id)
        except (LookupError, OSError):
            return jsonify({"error": "delete failed"}), 500
        return jsonify({"success": "true"})

    @app.post("/invoke/<function_id>")
    def invoke(function_id: str):
        input_text = request.form.get("input", "")
        try:
            result = invoke_function(manager, function_id, input_text)
        except Exception as exc:  # every failure is reported to the client
            return jsonify({"error": str(exc)}), 500
        return jsonify(result.to_dict())

    return app


def main(argv: list[str] | None = None) -> None:
    """Load stored functions and serve the HTTP interface."""
    parser = argparse.ArgumentParser(description="Serve deployed functions over HTTP.")
    parser.add_argument("--base-dir", default="functions")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args(argv)

    manager = FunctionManager(args.base_dir)
    manager.load_all()
    app = create_app(manager)
    app.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()