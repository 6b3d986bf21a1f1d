import multiprocessing

wsgi_app = "gumrukcum.main:app"
bind = "0.0.0.0:8000"
workers = multiprocessing.cpu_count()
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 1000
max_requests_jitter = 50
# Above GENERATION_TIMEOUT_SECONDS so slow model calls finish
timeout = 90
keepalive = 5
accesslog = "-"
errorlog = "-"
loglevel = "info"
