"""Nail salon booking API."""
