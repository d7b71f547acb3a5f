# aquascope

Tools for showing how Rust's ownership and borrowing rules play out in a
program, embedded straight into an mdBook.

The package installs two commands:

* `mdbook-aquascope`: an mdBook preprocessor. It finds `aquascope` code
  blocks and inline permission markers in your chapters and replaces them
  with HTML embeds.
* `aquascope-serve`: a small HTTP server. It runs the analysis on
  single-file programs submitted as JSON.

Both commands call `cargo aquascope`. That tool must be installed, together
with a matching nightly toolchain and a Miri sysroot. This package does not
provide the analysis itself.

## Installation

```
pip install aquascope
```

To run the test suite:

```
pip install "aquascope[test]"
pytest
```

## Writing Aquascope blocks

A block opens with `` ```aquascope, `` and then lists one or more operations
joined with `+`. Optional comma-separated configuration entries follow. An
entry without `=value` is treated as `true`.

````markdown
```aquascope,interpreter+permissions,shouldFail,showFlows
#fn main() {
let x = 1;`(focus,paths:x)`
`[]`let y = 2;`{}`
#}
```
````

Inside the code:

| Marker            | Meaning                                                          |
|-------------------|------------------------------------------------------------------|
| `#` at line start | The line is hidden in the rendered output.                       |
| `\#`              | A literal `#` at the start of a line.                            |
| `` `[]` ``        | Record an interpreter state at this position.                    |
| `` `(...)` ``     | Stepper options: `focus`, `paths:<literal>`, `rxpaths:<regex>`.  |
| `` `{}` ``        | Focus the permission boundaries on this line.                    |

The configuration keys `shouldFail` and `showFlows` are passed on to
`cargo aquascope` as `--should-fail` and `--show-flows`.

### Inline permissions

Outside of code blocks you can write permission badges:

```markdown
Here `x` has @Perm{read} and @Perm[lost]{write}, and gained @Perm[gained]{own}.
```

The valid permissions are `read`, `write`, `own` and `flow`. The optional
modifier is one of `[gained]`, `[lost]` or `[missing]`. An unknown
permission or modifier raises `aquascope.permissions.InvalidPermissionError`.

## Using the preprocessor

Add it to `book.toml`:

```toml
[preprocessor.aquascope]
command = "mdbook-aquascope"
```

How the command behaves:

* `mdbook-aquascope supports <renderer>` exits with status 0.
* `mdbook-aquascope --version` prints `aquascope`.
* With no arguments, it reads the `[context, book]` JSON from standard input.
  It rewrites every chapter's content, including sub-chapters, and writes the
  book JSON to standard output.

Each operation of a block is run with `cargo aquascope` in a temporary Cargo
project. Each run has a 10-second time limit. A failure, a timeout, an `Err`
response or a `BuildError` response is reported on standard error, and the
command exits with status 1.

Results are cached in `.aquascope-cache` (gzip-compressed JSON) in the
current directory. Blocks that have not changed are not analysed again. An
unreadable cache is reported as a warning and started afresh.

The toolchain is located like this:

* `RUSTC_PATH`: the path to the `rustc` binary, if set. Otherwise the
  preprocessor uses the channel pinned in `rust-toolchain.toml` in the
  current directory, through `rustup which`. Failing that, it uses `rustc`
  on `PATH`.
* `MIRI_SYSROOT`: the Miri sysroot, if set. Otherwise the preprocessor asks
  `cargo miri setup --print-sysroot`.

## Running the server

```
aquascope-serve
```

The server listens on `127.0.0.1:8008` by default. It accepts these routes:

* `GET /hi`: a liveness check that answers `HELLO!`.
* `POST /permissions`: runs `cargo --quiet aquascope permissions`.
* `POST /interpreter`: runs `cargo --quiet aquascope interpreter`, adding
  `--should-fail` when the request's `config` has a `shouldFail` key.

Requests are JSON objects of the form
`{"code": "fn main() {}", "config": {"shouldFail": true}}`. The `config`
field is optional.

Responses look like `{"success": true, "stdout": "...", "stderr": "..."}`.
`success` is true whenever the command printed anything on standard output.

Errors are reported as follows:

* A request body that is not a JSON object with a string `code` gets
  `{"error": "Unable to deserialize request: ..."}`.
* A failed run gets status 500 with a plain-text message.
* An unknown route gets status 404 with the text `No route <path>`.

All responses allow any origin (CORS).

Configuration comes from the environment:

* `AQUASCOPE_SERVER_ADDRESS`: the IP address to bind (default `127.0.0.1`).
* `AQUASCOPE_SERVER_PORT`: the port to bind (default `8008`). A value that
  is not a valid port falls back to the default.
* `AQUASCOPE_NO_DOCKER`: when set, the server only logs a warning at
  start-up.

Each command started for a request is given at most 20 seconds.

### What the server does not do

There is no sandbox. Every request gets a fresh temporary directory on the
host. `cargo new` creates a project there, the submitted code is written to
`src/main.rs`, and `cargo aquascope` runs directly on the machine. The
directory is removed afterwards. No container is used, and there are no
memory, CPU or process limits beyond the 20-second time limit. Do not expose
the server to untrusted users.

## Library use

The parsers can be used on their own:

```python
from aquascope.block import parse_all
from aquascope.permissions import parse_perms

for span, block in parse_all(markdown_text):
    print(span, block.operations, block.config, block.annotations.to_json())

for span, html in parse_perms(markdown_text):
    print(span, html)
```

The other public pieces are:

* `aquascope.annotations.parse_annotations(code)`: returns the cleaned code
  and an `AquascopeAnnotations`.
* `aquascope.preprocessor.AquascopePreprocessor`: provides `replacements`,
  `process_code`, `run_aquascope` and `save_cache`.
* `aquascope.preprocessor.render_embed` and
  `aquascope.preprocessor.apply_replacements`.
* `aquascope.cache.load_cache(path)` and `aquascope.cache.Cache`.
* `aquascope.container.Container`: an async workspace; create one with
  `await Container.create()`.
* `aquascope.server.create_app(container_factory)`: returns an aiohttp
  application.