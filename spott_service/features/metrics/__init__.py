"""Prometheus metrics exposition."""
