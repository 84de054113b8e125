# scripts/init_db.py

import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))  # ajoute backend/ au PYTHONPATH

from app.db.base import init_db
from app.db.seed import seed_initial_data

if __name__ == "__main__":
    init_db()
    if seed_initial_data():
        print("Database initialised with sample data.")
    else:
        print("Database already contains users, seed skipped.")
