import os

# Keep test runs from writing daily log files
os.environ.setdefault('LOG_DIR', '')
