"""
Initialize database: creates all tables.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--seed]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import create_tables, engine, SessionLocal
from app.config import settings
from app.models.unit import Unit
from sqlalchemy import inspect, text

DEMO_UNITS = [
    {"name": "Matriz", "code": "MTZ", "address": "Av. Central, 100"},
    {"name": "Filial Norte", "code": "FNT", "address": "Rod. Norte, km 12"},
]


def seed_units():
    db = SessionLocal()
    try:
        created = 0
        for data in DEMO_UNITS:
            if db.query(Unit).filter(Unit.code == data["code"]).first():
                continue
            db.add(Unit(**data))
            created += 1
        db.commit()
        print(f"✅ Seeded {created} unit(s)")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create fleet tables")
    parser.add_argument("--seed", action="store_true", help="Insert demo units")
    args = parser.parse_args()

    print("🗄️  Fleet DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.seed:
        seed_units()

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn app.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
