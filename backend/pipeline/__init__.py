"""
Pipeline orchestration: one single-flight collection, scoring and reasoning
cycle per batch key, merged into the in-memory intel store.
"""
