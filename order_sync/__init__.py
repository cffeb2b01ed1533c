"""
Square order sync: collects orders updated in a time window across all
active Square locations and normalizes them with catalog data.
"""
