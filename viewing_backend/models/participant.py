from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from viewing_backend.database import Base


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)
    participant_id = Column(String(64), nullable=False, unique=True, index=True)
    condition = Column(String(50), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationship to sessions
    sessions = relationship("Session", back_populates="participant")
