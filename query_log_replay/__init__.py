"""
Capture the query log of an InfluxDB IOx database and replay it against
another database, timing each query.
"""

__version__ = "0.1.0"
