"""
Data Generation Module
"""
from .generators import DataGenerator, ProductGenerator, OrderGenerator, seed_everything

__all__ = [
    "DataGenerator",
    "ProductGenerator",
    "OrderGenerator",
    "seed_everything",
]
