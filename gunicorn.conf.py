"""
Gunicorn configuration for the mood chat production server.

Env vars that override defaults:
  PORT     : TCP port to bind
  WORKERS  : number of worker processes (default: 1)
"""
import os

# Platform-provided port, 8000 locally
bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Pending session drafts live in worker memory, so every turn of a session
# must land on the same worker. Keep one worker unless requests are pinned.
workers = int(os.environ.get("WORKERS", "1"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

wsgi_app = "moodchat.main:app"

# Chat clients send bursts of turns; reuse the connection between them.
keepalive = 5

# Must exceed MOOD_SCORER_TIMEOUT_SECONDS so a slow remote scorer degrades
# to the neutral reply instead of killing the worker.
timeout = 60

# Access and error logs go to stdout for the platform collector.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Graceful restart: the lifespan hook drains pending drafts inside this window.
graceful_timeout = 30
