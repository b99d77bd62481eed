"""
Declarative base shared by every content access model.

Kept free of model imports so models, repositories and migrations can all
import it without cycles.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
