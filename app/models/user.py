from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.database import Base


# Accounts are issued by the external auth provider; only the columns the
# list core joins on are mirrored here.
class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lists = relationship("MediaList", back_populates="owner", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
