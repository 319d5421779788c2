"""
Gunicorn configuration for the StarshipPlan API.

    gunicorn -c gunicorn.conf.py starship.main:app

Env vars that override defaults:
  PORT     TCP port to bind
  WORKERS  number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Ledger and level writes are retried on conflict, so several workers may
# safely serve the same household.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5
timeout = 60

# Application logs go through starship.core.logging; these are gunicorn's own.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
