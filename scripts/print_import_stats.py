import argparse
import os

import duckdb
import pandas as pd

# Default database written by the import tool
db_path = 'data/import.duckdb'
tables = ['sections', 'posts', 'tags', 'storage_items', 'blocks', 'publish_records']


def table_counts(con):
    """
    Returns a DataFrame with the row count of every import table that exists.
    """
    existing = {row[0] for row in con.execute("SHOW TABLES;").fetchall()}
    rows = []
    for table in tables:
        if table in existing:
            count = con.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            rows.append({'table': table, 'rows': int(count)})
    return pd.DataFrame(rows, columns=['table', 'rows'])


def block_type_counts(con):
    """
    Returns the number of blocks per block type, most frequent first.
    """
    return con.execute(
        "SELECT type, COUNT(*) AS blocks FROM blocks GROUP BY type ORDER BY blocks DESC, type"
    ).df()


def section_type_counts(con):
    return con.execute(
        "SELECT type, COUNT(*) AS sections FROM sections GROUP BY type ORDER BY type"
    ).df()


def print_import_stats(path):
    if not os.path.exists(path):
        print(f"Database not found: {path}")
        return 1

    con = duckdb.connect(database=path, read_only=True)
    try:
        counts = table_counts(con)
        print("Rows per table:")
        print(counts.to_string(index=False))
        if 'sections' in set(counts['table']):
            print("\nSections per type:")
            print(section_type_counts(con).to_string(index=False))
        if 'blocks' in set(counts['table']):
            print("\nBlocks per type:")
            print(block_type_counts(con).to_string(index=False))
    finally:
        con.close()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print statistics of an import database.")
    parser.add_argument("--db", default=db_path, help="Path to the DuckDB database")
    args = parser.parse_args()
    raise SystemExit(print_import_stats(args.db))
