#!/usr/bin/env python3
"""Script to list tables and their indexes."""
from typing import Dict, List, Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine

from hostelsync.config import get_settings


def check_indexes(engine: Optional[Engine] = None) -> Dict[str, List[str]]:
    engine = engine or create_engine(get_settings().database_url)
    inspector = inspect(engine)
    return {
        table: sorted(index["name"] for index in inspector.get_indexes(table))
        for table in sorted(inspector.get_table_names())
    }


if __name__ == "__main__":
    print("Database Indexes:")
    for table_name, index_names in check_indexes().items():
        print(f"Table: {table_name}")
        for index_name in index_names:
            print(f"  {index_name}")
