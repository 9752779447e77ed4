from sqlalchemy import Column, String, Boolean, DateTime
from db import Base


class StoredSession(Base):
    __tablename__ = "shopify_sessions"

    id = Column(String, primary_key=True)
    shop = Column(String, nullable=False, index=True)
    state = Column(String, nullable=False, default="")
    is_online = Column(Boolean, nullable=False, default=False)
    scope = Column(String, nullable=True)
    access_token = Column(String, nullable=True)
    expires = Column(DateTime(timezone=True), nullable=True)
