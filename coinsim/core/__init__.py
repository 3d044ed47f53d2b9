"""Core types, configuration and the trade simulation engine."""
