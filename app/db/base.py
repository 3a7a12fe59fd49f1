from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging
import os

logger = logging.getLogger(__name__)

# Database configuration
SUPABASE_PASSWORD = os.getenv("SUPABASE_PASSWORD", "")
SUPABASE_HOST = os.getenv("SUPABASE_HOST", "")
SUPABASE_USER = os.getenv("SUPABASE_USER", "postgres")
SUPABASE_PORT = os.getenv("SUPABASE_PORT", "5432")
SUPABASE_DB = os.getenv("SUPABASE_DB", "postgres")

# Direct PostgreSQL connection string
POSTGRES_URL = os.getenv("POSTGRES_URL", "")

# Database URL selection logic
if POSTGRES_URL:
    DATABASE_URL = POSTGRES_URL
    connect_args = {}
    logger.info("Using direct PostgreSQL URL")
elif SUPABASE_HOST and SUPABASE_PASSWORD:
    # Use Supabase PostgreSQL if credentials are provided
    DATABASE_URL = f"postgresql://{SUPABASE_USER}:{SUPABASE_PASSWORD}@{SUPABASE_HOST}:{SUPABASE_PORT}/{SUPABASE_DB}"
    connect_args = {}
    logger.info("Using Supabase PostgreSQL")
else:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./app.db")
    connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
    logger.info(f"Using SQLite: {DATABASE_URL}")

engine = create_engine(
    DATABASE_URL, connect_args=connect_args, pool_pre_ping=True, pool_recycle=300
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
