"""
Data Ingestion Module
"""
from .seed_db import create_schema, load_orders, load_products, order_to_model, seed_database

__all__ = [
    "create_schema",
    "load_orders",
    "load_products",
    "order_to_model",
    "seed_database",
]
