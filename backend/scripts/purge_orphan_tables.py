import argparse
import os

import psycopg2
from psycopg2 import sql
from dotenv import load_dotenv

load_dotenv()
load_dotenv("backend/.env")

SYSTEM_TABLES = ("datasets", "table_contexts", "chat_history")

ORPHANS_SQL = """
SELECT t.table_name
FROM information_schema.tables t
WHERE t.table_schema = 'public'
  AND t.table_type = 'BASE TABLE'
  AND t.table_name <> ALL(%s)
  AND NOT EXISTS (
      SELECT 1 FROM datasets d WHERE d.internal_table_name = t.table_name
  )
ORDER BY t.table_name
"""


def main():
    parser = argparse.ArgumentParser(
        description="List (or drop) data tables that no registered dataset points to."
    )
    parser.add_argument("--drop", action="store_true", help="drop the orphaned tables")
    args = parser.parse_args()

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")

    with psycopg2.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(ORPHANS_SQL, (list(SYSTEM_TABLES),))
            orphans = [r[0] for r in cur.fetchall()]

            if args.drop:
                for name in orphans:
                    cur.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(name)))

    print(f"orphans={len(orphans)}")
    for name in orphans:
        print(f"  {'dropped' if args.drop else 'found'}: {name}")


if __name__ == "__main__":
    main()
