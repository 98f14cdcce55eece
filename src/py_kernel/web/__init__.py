"""HTTP gateway for py-kernel.

This package provides a Flask application that exposes the syscall
interface over HTTP.  It is an **optional** extra — install with::

    pip install py-kernel[web]

The ``create_app`` factory in ``app.py`` boots a kernel and serves two
endpoints:

- ``POST /api/syscall`` — invoke a syscall and return its result as JSON.
- ``GET /api/status`` — kernel state, uptime, and memory summary.
"""
