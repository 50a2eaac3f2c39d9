"""Scan orchestration, risk aggregation and canonical serialization."""
