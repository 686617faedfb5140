"""
Infrastructure Module

Backends behind the core protocols: cache stores and metrics sinks.
"""
