"""Waste pickup dispatch service."""
