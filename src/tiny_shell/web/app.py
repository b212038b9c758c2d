"""Flask application factory for the tiny-shell web UI.

The ``create_app`` function creates (or adopts) a shell and returns a
Flask app with three endpoints:

- ``GET /`` — render the terminal HTML page.
- ``POST /api/execute`` — run a command line and return JSON.
- ``GET /api/status`` — return whether the session is running, the
  working directory, and the last exit status.

Each request's output is captured by handing the shell a temporary file
as both stdout and stderr, so programs and builtins write to it exactly
as they would write to a terminal.  The flattened executor never
touches the server process's own descriptors, which is why it is the
one the web UI uses by default.

Requests are served one line at a time: the shell, its environment and
its descriptor ledger have a single writer, so ``/api/execute`` holds a
lock for the whole line, and the development server runs unthreaded so
no fork happens beside another request's thread.
"""

from __future__ import annotations

import os
import tempfile
import threading

from flask import Flask, Response, jsonify, render_template, request

from tiny_shell.config import Config, ExecutorType
from tiny_shell.env import Environment
from tiny_shell.errors import Terminate
from tiny_shell.plumbing import Streams
from tiny_shell.repl import build_prompt, format_banner
from tiny_shell.shell import Shell

_HTTP_BAD_REQUEST = 400
_WEB_PROMPT = "{cwd} $ "


def _capture(shell: Shell, command: str) -> tuple[str, int, bool]:
    """Run *command*; return its combined output, status, and whether it exited."""
    with tempfile.TemporaryFile() as out, open(os.devnull, "rb") as null:
        streams = Streams(stdin=null.fileno(), stdout=out.fileno(), stderr=out.fileno())
        halted = False
        try:
            status = shell.run_line(command, streams)
        except Terminate as exc:
            status = exc.code
            halted = True
        out.seek(0)
        return out.read().decode(errors="replace"), status, halted


def create_app(shell: Shell | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        shell: The shell to serve.  A fresh one using the flattened
            executor and a snapshot of this process's environment is
            created if omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    if shell is None:
        config = Config(executor=ExecutorType.FLATTEN)
        shell = Shell(config=config, env=Environment.from_process())
    served: Shell = shell
    session = {"halted": False}
    # The shell is single-threaded; one request runs a line at a time.
    lock = threading.Lock()

    app = Flask(__name__)

    @app.route("/")
    def index() -> str:  # pyright: ignore[reportUnusedFunction]
        """Render the terminal HTML page."""
        return render_template(
            "index.html",
            banner=format_banner(served.config),
            prompt=build_prompt(Config(prompt=_WEB_PROMPT), served.env),
        )

    @app.route("/api/execute", methods=["POST"])
    def execute() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Run a command line and return JSON output.

        Expects JSON body: ``{"command": "..."}``

        Returns:
            JSON with ``output``, ``status`` and ``halted`` fields.

        """
        data = request.get_json(silent=True)
        if data is None or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST

        command: str = data["command"]
        with lock:
            if session["halted"]:
                return jsonify({"output": "", "status": served.last_status, "halted": True})
            output, code, halted = _capture(served, command)
            session["halted"] = halted
        return jsonify({"output": output, "status": code, "halted": halted})

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return session state for status polling.

        Returns:
            JSON with ``running``, ``cwd`` and ``last_status`` fields.

        """
        return jsonify(
            {
                "running": not session["halted"],
                "cwd": served.env.cwd,
                "last_status": served.last_status,
            }
        )

    return app


def main() -> None:
    """Run the web UI development server.

    This is the ``tiny-shell-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080, threaded=False)
