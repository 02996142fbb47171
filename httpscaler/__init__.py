"""Aggregate pending HTTP request counts from interceptors and answer external-scaler queries."""

__version__ = "0.1.0"
__all__ = ["config", "naming", "queue_pinger", "handlers"]