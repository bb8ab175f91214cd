"""
Media transfer and persistence.

This subpackage downloads media referenced by legacy content (with rate
limiting and per-run memoization), stores it under the destination file
tree, and writes imported sections and posts to DuckDB.  Storage writes
and database changes of a run are batched so a failed run leaves nothing
behind.
"""
