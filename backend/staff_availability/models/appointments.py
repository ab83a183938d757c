from sqlalchemy import Column, Text, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()
metadata = Base.metadata


class Appointments(Base):
    __tablename__ = 'appointments'

    id = Column(Text, primary_key=True)
    staff_id = Column(Text, nullable=False, index=True)
    location_id = Column(Text)
    date_start = Column(Text, nullable=False)
    date_end = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    participant_ids = Column(Text)  # JSON list of client ids
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
