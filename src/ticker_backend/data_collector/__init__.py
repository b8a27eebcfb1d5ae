"""
Data collection: configuration, ticker staleness and Polygon.io dividend ingestion
"""
