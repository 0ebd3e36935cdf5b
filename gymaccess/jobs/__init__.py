"""
Background jobs.
"""
