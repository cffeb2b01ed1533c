"""
Access layer for the Square REST API.
"""
