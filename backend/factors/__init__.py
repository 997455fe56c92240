"""
Weighted multi-factor scoring: a fixed catalog of independent factors per
event, aggregated into a single advantage verdict.
"""
