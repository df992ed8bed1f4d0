# src/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a database session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_models() -> None:
    """Import every model module so the metadata is complete, then create tables."""
    import auth.models  # noqa: F401
    import tipster.models  # noqa: F401
    import offer.models  # noqa: F401
    import subscription.models  # noqa: F401
    import content.models  # noqa: F401
    import follow.models  # noqa: F401
    import payment.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
