"""Flask application factory for the py-kernel syscall gateway.

The ``create_app`` function boots a kernel and returns a Flask app with
two endpoints:

- ``POST /api/syscall`` — body ``{"name": "ls", "args": ["/home"]}``;
  responds ``{"result": ...}``, or ``{"error": ..., "kind": ...}`` with
  status 400 when the syscall raises.
- ``GET /api/status`` — ``{"state", "uptime", "processes", "memory"}``.

Only JSON-serialisable arguments reach the kernel this way, so ``spawn``
(which needs a callable) is refused with 400.

The kernel is booted outside any event loop, so no tick task runs.
Instead every request delivers one scheduler quantum before it is
served.  Requests may arrive on several server threads; one lock keeps
every touch of the kernel on a single logical thread.
"""

from __future__ import annotations

import threading

from flask import Flask, Response, jsonify, request

from py_kernel.config import KernelConfig
from py_kernel.kernel import Kernel, KernelState
from py_kernel.syscalls import SyscallName

_HTTP_BAD_REQUEST = 400
_NOT_OVER_HTTP = frozenset({SyscallName.SPAWN})


def _bad_request(error: str, *, kind: str = "BadRequest") -> tuple[Response, int]:
    return jsonify({"error": error, "kind": kind}), _HTTP_BAD_REQUEST


def create_app(config: KernelConfig | None = None) -> Flask:
    """Create and configure the Flask application.

    Boot a kernel and wire up routes.  The kernel lives as long as the
    app and is reachable as ``app.config["KERNEL"]``.

    Args:
        config: Boot configuration; read from the environment when omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    kernel = Kernel(config or KernelConfig.from_env())
    kernel.boot()

    lock = threading.Lock()

    app = Flask(__name__)
    app.config["KERNEL"] = kernel

    @app.before_request
    def deliver_tick() -> None:  # pyright: ignore[reportUnusedFunction]
        """Run one scheduling step, standing in for the timer interrupt."""
        with lock:
            if kernel.is_running:
                kernel.tick()

    @app.route("/api/syscall", methods=["POST"])
    def syscall() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Invoke a syscall and return its result as JSON.

        Expects JSON body: ``{"name": "...", "args": [...]}``

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "name" not in data:
            return _bad_request("Missing 'name' field")

        name = str(data["name"])
        args = data.get("args", [])
        if not isinstance(args, list):
            return _bad_request("'args' must be a list")
        if name in _NOT_OVER_HTTP:
            msg = f"Syscall {name!r} is not available over HTTP"
            return _bad_request(msg)

        with lock:
            if kernel.state is not KernelState.RUNNING:
                return _bad_request("System halted.", kind="RuntimeError")
            try:
                result = kernel.syscall(name, *args)
            except Exception as exc:  # noqa: BLE001
                return _bad_request(str(exc), kind=type(exc).__name__)
        return jsonify({"result": result})

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return kernel status for polling.

        Returns:
            JSON with ``state``, ``uptime``, ``processes`` and ``memory``.

        """
        with lock:
            running = kernel.state is KernelState.RUNNING
            body = {
                "state": str(kernel.state),
                "uptime": kernel.uptime,
                "processes": len(kernel.processes) if running else 0,
                "memory": kernel.memory.info() if running else None,
            }
        return jsonify(body)

    return app


def main() -> None:
    """Run the gateway development server.

    This is the ``py-kernel-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
