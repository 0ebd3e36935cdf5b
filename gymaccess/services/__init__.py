"""
Application services: pass issuance, check-in, staff administration and
pass notifications.
"""
