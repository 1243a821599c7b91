"""
Database configuration
"""
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker
from caption_impostor.core.config import settings

DATABASE_URL = settings.DATABASE_URL

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    pool_pre_ping=True,
    echo=False  # True logs every SQL statement
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """Yield a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def import_models():
    """Register every model on Base.metadata"""
    from caption_impostor.models.room import Room
    from caption_impostor.models.player import Player
    from caption_impostor.models.round_model import Round
    from caption_impostor.models.caption import Caption
    from caption_impostor.models.vote import Vote
    from caption_impostor.models.image_title import ImageTitle

async def init_db():
    """Create tables, migrate older databases and seed the image catalog"""
    import_models()

    Base.metadata.create_all(bind=engine)

    _migrate_database()

    if settings.SEED_IMAGE_CATALOG:
        from caption_impostor.services.image_service import ImageService
        db = SessionLocal()
        try:
            ImageService(db).populate_sample_images()
        finally:
            db.close()

    print("Database initialised")

# Columns added after the first release: (table, column, DDL type)
_ADDED_COLUMNS = [
    ("game_rounds", "voting_deadline_at", "DATETIME"),
    ("game_rooms", "last_heartbeat", "DATETIME"),
    ("game_rooms", "completed_at", "DATETIME"),
]

def _migrate_database():
    """Add columns missing from databases created by older versions"""
    try:
        inspector = inspect(engine)
        with engine.connect() as conn:
            for table, column, ddl_type in _ADDED_COLUMNS:
                columns = [c["name"] for c in inspector.get_columns(table)]
                if column in columns:
                    continue
                print(f"📦 Migration: adding {table}.{column}...")
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl_type}"))
                conn.commit()
                print(f"✅ {table}.{column} added")
    except Exception as e:
        print(f"⚠️ Database migration failed: {e}")
        print("Continuing; features depending on new columns may be unavailable")
