"""Middleware package for FastAPI application"""
from apns_gateway.middleware.logging_middleware import RequestLoggingMiddleware

__all__ = ['RequestLoggingMiddleware']
