# gunicorn -c gunicorn.conf.py run:app
bind = '0.0.0.0:5001'

# Sessions live in process memory and Socket.IO rooms are per-process:
# exactly one eventlet worker.
workers = 1
worker_class = 'eventlet'

worker_connections = 1000
timeout = 120
keepalive = 2
preload_app = True

# Logging
accesslog = '-'
errorlog = '-'
loglevel = 'info'
