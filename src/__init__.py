"""
Sales Metrics Dashboard
"""
