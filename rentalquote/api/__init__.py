"""Inbound HTTP adapter."""
