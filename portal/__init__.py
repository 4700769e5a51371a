"""Maintenance ticket lifecycle engine and its HTTP API."""
