"""Reliability — backoff and cancellable waits."""
