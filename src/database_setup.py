import time
import os
import urllib.parse
import psycopg2
from sqlalchemy import create_engine, text

# 1. Configuration (Inside Docker uses port 5432)
DB_USER = os.getenv("PG_USER", "postgres")
DB_PASS = os.getenv("PG_PASSWORD", "postgres")
DB_HOST = os.getenv("PG_HOST", "localhost")
DB_PORT = int(os.getenv("PG_PORT", "5432"))
DB_NAME = os.getenv("PG_DB", "road_damage")

# 2. Table definition (raw SQL because geom is a PostGIS type)
DAMAGE_REPORTS_DDL = """
    CREATE TABLE IF NOT EXISTS public.damage_reports (
        id TEXT PRIMARY KEY,
        captured_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        damage_type TEXT,
        confidence REAL,
        geom geometry(Point, 4326),
        altitude REAL,
        speed_kmh REAL,
        voice_memo TEXT,
        bbox JSONB,
        raw_json JSONB,
        size TEXT
    )
"""

DAMAGE_REPORTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS damage_reports_geom_idx ON public.damage_reports USING GIST (geom)",
    "CREATE INDEX IF NOT EXISTS damage_reports_captured_at_idx ON public.damage_reports (captured_at DESC)",
]


def initialize_database():
    # A. Wait for Postgres to be ready and create the DB
    conn = None
    while not conn:
        try:
            # Connect to default 'postgres' db to create the target db
            conn = psycopg2.connect(
                dbname='postgres', user=DB_USER, password=DB_PASS, host=DB_HOST, port=DB_PORT
            )
            conn.autocommit = True
            with conn.cursor() as cur:
                cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (DB_NAME,))
                if not cur.fetchone():
                    cur.execute(f'CREATE DATABASE "{DB_NAME}"')
            conn.close()
        except psycopg2.OperationalError as e:
            print(f"Waiting for database... {e}")
            conn = None
            time.sleep(2)

    # B. Enable PostGIS and create the damage table
    safe_pass = urllib.parse.quote_plus(DB_PASS)

    connection_url = f"postgresql+psycopg2://{DB_USER}:{safe_pass}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    engine = create_engine(connection_url)

    print("Attempting to create tables...")
    with engine.begin() as connection:
        connection.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
        connection.execute(text(DAMAGE_REPORTS_DDL))
        for ddl in DAMAGE_REPORTS_INDEXES:
            connection.execute(text(ddl))
    engine.dispose()
    print("Database and tables initialized successfully.")


if __name__ == "__main__":
    initialize_database()
