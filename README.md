# funchost

funchost is a small HTTP server for running functions. You upload a
program, funchost stores it (building it first if it is Go source), and
you can then run it over HTTP. Each run returns the program's output,
exit code and duration as JSON.

## What it accepts

- A single Go source file (`.go`). It is saved as `main.go`. funchost
  writes a minimal `go.mod` if none is present, runs `go mod tidy`, and
  then builds `main.bin` with `go build`.
- A zip archive (`.zip`). It is saved as `src.zip` and unpacked. Entries
  whose paths would leave the target directory are refused. funchost
  finds the first directory (in sorted order) that holds `main.go`, writes
  a minimal `go.mod` there if needed, runs `go mod download`, and builds
  `main.bin`.
- Any other file. It is stored as `main.bin`, to be run as it is.

The file extension is taken from the uploaded file name and compared in
lower case. Building needs the `go` command on the `PATH`.

For Go sources, funchost also tries to build `main.wasm` with
`tinygo build -target=wasi`. If that build fails, funchost logs the error
and leaves the function's `wasmPath` empty. Registration still succeeds.

## Storage

Each function lives in `<base-dir>/<name>/<version>/`, where the base
directory is `functions` unless you choose another. That directory holds
the build artefacts and a `meta.json` with the function's record:
`id`, `version`, `name`, `binPath`, `wasmPath`, `description` and
`created_at`.

When the server starts, it loads every version directory that holds both
a `main.bin` and a readable `meta.json`. Directories that lack either
one, or whose `meta.json` does not parse, are skipped.

## Installing and running

```
pip install .
funchost
```

Options:

- `--base-dir DIR`: where functions are stored. The default is `functions`.
- `--host HOST`: the address to listen on. The default is `0.0.0.0`.
- `--port PORT`: the port to listen on. The default is `8080`.

## HTTP API

| Method | Path              | Purpose                                        |
|--------|-------------------|------------------------------------------------|
| POST   | `/functions`      | Register a function (multipart form)           |
| GET    | `/functions`      | List registered functions                      |
| GET    | `/functions/<id>` | Show one function                              |
| DELETE | `/functions/<id>` | Delete a function and its directory            |
| POST   | `/invoke/<id>`    | Run a function; form field `input` is its stdin |

To register a function, send these form fields:

- `name`
- `version` (optional). The default is `v<unix-time>`.
- `file` (required). If it is missing, the reply is status 400 with
  `{"error": "file required"}`.

Every other failure is reported with status 500 and an `error` field.
This includes an unknown id, a failed build and a failed delete. Listing
with no functions registered returns `null`. A successful delete returns
`{"success": "true"}`.

Registering a function:

```
curl -F name=hello -F file=@main.go http://localhost:8080/functions
```

Invoking a function:

```
curl -F input="world" http://localhost:8080/invoke/<id>
```

An invocation returns these fields:

- `Stdout`
- `Stderr`
- `ExitCode`
- `DurationMs`

A program has 5 seconds to finish. If it runs longer, it is killed and
reports exit code -1. A program that cannot be started, or that is ended
by a signal, also reports -1. If it could not be started, the reason is
given in `Stderr`.

## Using it from Python

```python
from funchost.manager import FunctionManager
from funchost.invoker import invoke_function
from funchost.app import create_app

manager = FunctionManager("functions")
manager.load_all()

for fn in manager.list():
    result = invoke_function(manager, fn.id, "some input")
    print(result.exit_code, result.stdout)

app = create_app(manager)  # a Flask application
```

`FunctionManager` has these methods: `register`, `list`, `get`,
`delete`, `load_all` and `save_meta`. `get` and `delete` raise
`FunctionNotFoundError` for an unknown id. A failed toolchain step
raises `BuildError`. A zip entry that escapes its directory raises
`IllegalPathError`.

`funchost.invoker.invoke_bin(path, input_text, timeout)` runs any
executable directly.

## What it does not do

- It never runs the WebAssembly module. `main.wasm` is built and
  recorded in `wasmPath`, but every invocation runs the native `main.bin`.
- It has no authentication, and it does not isolate the programs it
  runs. An uploaded program runs as the server's user, with the server's
  environment and file access.