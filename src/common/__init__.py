"""Shared helpers: HTTP, logging, release ages and the worker pool."""
