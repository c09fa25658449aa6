"""Observability helpers: structlog JSON logging plus the request middleware chain.

Request logs carry method, URI and duration; the recovery boundary logs handler
faults before answering with a 500.
"""
