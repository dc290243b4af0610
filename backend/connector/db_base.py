"""
SQLAlchemy declarative base shared by all connector models.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
