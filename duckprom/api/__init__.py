"""duckprom HTTP API.

This package provides the FastAPI application exposing the Prometheus remote
read/write endpoints, health checks and adapter telemetry.
"""
