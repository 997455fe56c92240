"""
Source collection: one record (or an explained absence) per external source
per event, fetched concurrently with partial-failure tolerance.
"""
