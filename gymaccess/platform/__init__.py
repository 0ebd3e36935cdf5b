"""
Platform layer: errors, audit events and write authorization.
"""
