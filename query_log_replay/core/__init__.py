"""
Capture, load and replay of query logs.
"""
