"""Event media storage: image processing with failover object storage"""

__version__ = "0.1.0"
