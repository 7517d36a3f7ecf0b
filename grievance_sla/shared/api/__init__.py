"""Shared API middleware."""
