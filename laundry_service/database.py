# database.py
import os
from databases import Database
from sqlalchemy import create_engine, MetaData
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./laundry_service.db")

# async database client
database = Database(DATABASE_URL)

# SQLAlchemy sync engine for metadata.create_all()
SYNC_DATABASE_URL = DATABASE_URL.replace("+asyncpg", "").replace("+aiosqlite", "")
if SYNC_DATABASE_URL.startswith("sqlite"):
    engine = create_engine(SYNC_DATABASE_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(SYNC_DATABASE_URL)

metadata = MetaData()


def row_to_dict(table, row):
    """Convert a fetched record into a plain dict keyed by the table's column names."""
    if row is None:
        return None
    return {column.name: row[column.name] for column in table.columns}


def paginate(total: int, page: int, limit: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "total_pages": total_pages,
        "current_page": page,
        "total": total,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


LIKE_ESCAPE = "\\"


def like_pattern(text: str) -> str:
    """Substring pattern for ilike(); % and _ in the text match literally."""
    escaped = text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
