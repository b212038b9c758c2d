"""Browser-based web UI for tiny-shell.

This package provides a Flask application that exposes the shell
through a web browser.  Start it with the ``tiny-shell-web`` command.

The ``create_app`` factory in ``app.py`` creates a shell and serves
three endpoints:

- ``GET /`` — HTML terminal page.
- ``POST /api/execute`` — run a command line and return JSON.
- ``GET /api/status`` — session state for live polling.
"""
