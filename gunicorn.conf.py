# =============================================================================
# Statbill - Gunicorn Production Configuration
# Usage: gunicorn -c gunicorn.conf.py run:app
# =============================================================================
import os
import multiprocessing

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Workers: 2 * CPU + 1, capped at 4 for small instances
workers = min(multiprocessing.cpu_count() * 2 + 1, 4)
threads = 2

# Preload app to share the plan catalog across workers
preload_app = True

# Timeouts (Stripe calls happen in-request)
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logging: app logs are JSON on stdout, keep gunicorn on the same streams
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 50

# Webhook payloads are small; keep request limits tight
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190

worker_class = "gthread"
forwarded_allow_ips = "*"
