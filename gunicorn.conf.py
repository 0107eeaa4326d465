"""
Gunicorn configuration for the emotional context API.

    gunicorn app.main:app -c gunicorn.conf.py

Env vars that override defaults:
  PORT       TCP port to bind (default: 8000)
  WORKERS    number of worker processes (default: 2)
  LOG_LEVEL  shared with the app's loguru setup (default: INFO)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Context requests are short DB reads; two workers fit a small container.
workers = int(os.environ.get("WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# The engine degrades instead of hanging, so a long request means a stuck
# database connection. Recycle the worker.
timeout = 60
graceful_timeout = 20

loglevel = os.environ.get("LOG_LEVEL", "INFO").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
