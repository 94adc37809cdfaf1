"""
Gunicorn configuration for the TradeLedger API
Uvicorn workers behind gunicorn's process manager
"""
import multiprocessing
import os

from dotenv import load_dotenv

load_dotenv()

from config import Config  # noqa: E402

# Server socket
bind = f"0.0.0.0:{Config.PORT}"
backlog = 2048

# Worker processes
# Each worker holds its own DB pool (DB_POOL_SIZE + DB_MAX_OVERFLOW connections)
workers = int(os.getenv("WEB_CONCURRENCY", min(4, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
timeout = 60
keepalive = 30

# Logging
accesslog = "-"
errorlog = "-"
loglevel = Config.LOG_LEVEL.lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

proc_name = "tradeledger_api"

daemon = False
preload_app = False


def when_ready(server):
    print(f"✅ Gunicorn ready with {workers} uvicorn workers on {bind}")


def post_fork(server, worker):
    print(f"🔧 Worker {worker.pid} started")


def worker_abort(worker):
    print(f"❌ Worker {worker.pid} aborted")
