"""
Polygon.io dividend ingestion pipeline
"""
