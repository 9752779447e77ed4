from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def make_sessionmaker(database_url: str) -> sessionmaker:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # the app serves requests from a threadpool
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, connect_args=connect_args)
    return sessionmaker(bind=engine, autoflush=False)
