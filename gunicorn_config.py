"""Gunicorn configuration for the Daily Dose Slack gate."""
import os
import multiprocessing

# Application factory
wsgi_app = 'src.app:create_app()'

# Server socket
bind = f"0.0.0.0:{os.getenv('PORT', '3000')}"
backlog = 2048

# One request per worker thread; the gate and pipelines are shared read-only
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = 'sync'
timeout = 30  # Slack retries after 3s; handlers reply through response_url
keepalive = 5

# Logging
accesslog = '-'
errorlog = '-'
loglevel = os.getenv('LOG_LEVEL', 'info')
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s'

proc_name = 'daily-dose'

daemon = False

max_requests = 1000
max_requests_jitter = 50

preload_app = True


def on_starting(server):
    from src.app import configure_logging
    configure_logging()
