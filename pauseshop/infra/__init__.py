"""Infra layer utilities (header pools)."""

from .header_pool import BASE_HEADERS, HeaderPool

__all__ = ["BASE_HEADERS", "HeaderPool"]
