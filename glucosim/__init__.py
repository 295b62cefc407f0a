"""Synthetic CGM demo data engine and stored-data query service."""
