"""
Pass entitlement and role-scoped access core for the gym membership backend.
"""
