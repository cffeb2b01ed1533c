"""
Order collection services.

Batches locations, walks Orders Search pages, enriches each order with
catalog data and returns the normalized result of one run.
"""
