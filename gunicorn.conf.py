"""
Gunicorn Configuration

Runs the API with Uvicorn workers. Each worker opens its own database
engine and Redis pool in the application lifespan, so nothing is shared
across the fork.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
# Long pushdown windows can take a while on a cold cache
timeout = int(os.getenv("WORKER_TIMEOUT", 120))
keepalive = 5
graceful_timeout = 30

proc_name = "sales-metrics-api"
daemon = False

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s'


def when_ready(server):
    server.log.info("Sales Metrics API ready on %s with %s workers", bind, workers)


def worker_abort(worker):
    worker.log.warning("Worker %s aborted, likely a request over the %ss timeout", worker.pid, timeout)
