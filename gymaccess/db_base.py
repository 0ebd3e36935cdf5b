"""
Declarative base shared by every gymaccess table, including the audit log.

Kept free of model imports so platform modules can define tables without
import cycles.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
