from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from env_configs.core.config import settings


def make_engine(url: str, **kwargs):
    connect_args = {}
    if url.startswith('sqlite'):
        # request handlers and the cron runner share the file from different threads
        connect_args['check_same_thread'] = False
    return create_engine(url, connect_args=connect_args, future=True, **kwargs)


engine = make_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
    pass
