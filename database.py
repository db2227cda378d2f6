from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from urllib.parse import quote_plus
import os
from config.settings import settings
from models import Base
import logging

logger = logging.getLogger("app")

# Check if full database URL is provided (e.g., from Render, Heroku)
DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    DB_PASSWORD_RAW = os.environ.get("DB_PASSWORD")
    if DB_PASSWORD_RAW:
        # URL-encode the password to handle special characters
        password = quote_plus(DB_PASSWORD_RAW)

        DB_HOST = os.environ.get("DB_HOST", "localhost")
        DB_PORT = os.environ.get("DB_PORT", "5432")  # Standard PostgreSQL port
        DB_NAME = os.environ.get("DB_NAME", "buildpath")
        DB_USER = os.environ.get("DB_USER", "postgres")

        DATABASE_URL = f"postgresql://{DB_USER}:{password}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    else:
        logger.warning("No database configured, using local SQLite file")
        DATABASE_URL = settings.DEFAULT_DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency to get a DB session for each request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """
    Create all tables defined by models that inherit from Base.
    """
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created or already exist.")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
