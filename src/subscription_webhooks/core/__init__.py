"""
Core infrastructure: errors, logging and observability.
"""
