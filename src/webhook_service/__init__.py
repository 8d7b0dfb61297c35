"""Outbound webhook delivery service."""
