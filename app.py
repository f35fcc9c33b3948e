"""Application entrypoint for the AccountGuard Flask project."""
from __future__ import annotations

from accountguard_ext import create_app

app = create_app()


if __name__ == "__main__":
    # Production deployments should rely on wsgi.py or a dedicated WSGI server.
    app.run(use_reloader=False, host="0.0.0.0", port=8000)
