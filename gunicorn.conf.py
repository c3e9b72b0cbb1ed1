"""
Gunicorn configuration for the Null Fake API.

Usage:
    gunicorn app.main:app -c gunicorn.conf.py

PORT, WEB_CONCURRENCY and GUNICORN_TIMEOUT override the defaults below.
"""

import multiprocessing
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# Analysis jobs run in the worker process (scripts/run_job_worker.py), so web
# workers mostly wait on the database; cap them to keep the pool small.
workers = int(os.getenv("WEB_CONCURRENCY", min(multiprocessing.cpu_count() * 2 + 1, 8)))

worker_class = "uvicorn.workers.UvicornWorker"

# Extension submissions analyze reviews inline and can take minutes
timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
