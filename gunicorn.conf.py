"""
Gunicorn WSGI Server Configuration

Production configuration for the registration service:

    gunicorn --config gunicorn.conf.py "app:application"

Workers are independent processes sharing nothing but the record store;
control-number allocation stays unique across them because the counter
increment happens atomically in MongoDB. The in-process ``memory`` backend
must not be used with more than one worker.

Prometheus metrics from all workers are aggregated when
``PROMETHEUS_MULTIPROC_DIR`` points at a writable directory.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Workers
workers = int(os.getenv("GUNICORN_WORKERS", max(2, min(8, (2 * multiprocessing.cpu_count()) + 1))))
worker_class = "sync"
max_requests = 1000
max_requests_jitter = 100
timeout = 60
keepalive = 5
graceful_timeout = 30

# MongoClient is not fork-safe: each worker builds its own application.
preload_app = False

# Logging (stdout/stderr for container log collection)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s "%({x-correlation-id}i)s"'
capture_output = True

proc_name = "bizreg"

raw_env = [
    "FLASK_ENV=" + os.getenv("FLASK_ENV", "production"),
]


def on_starting(server):
    server.log.info("bizreg starting with %d workers", workers)


def post_fork(server, worker):
    worker.log.info("Worker %s ready to handle requests", worker.pid)


def child_exit(server, worker):
    if os.getenv("PROMETHEUS_MULTIPROC_DIR"):
        from prometheus_client import multiprocess

        multiprocess.mark_process_dead(worker.pid)


def worker_abort(worker):
    worker.log.error("Worker %s aborted", worker.pid)
