"""
Domain layer for the Square order sync.

This layer contains business entities and value objects, independent of
the HTTP clients that produce them.
"""
