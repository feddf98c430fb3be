"""
Database Module
"""
from .connection import init_database, close_database, get_db, get_db_dependency
from .models import Base, FactOrder, FactOrderItem, DimProduct

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_db_dependency",
    "Base",
    "FactOrder",
    "FactOrderItem",
    "DimProduct",
]
