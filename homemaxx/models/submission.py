"""
LeadSubmission model: one row per lead handed to the CRM.
"""
from sqlalchemy import Column, Integer, Boolean, Text, DateTime, JSON
from sqlalchemy.sql import func

from homemaxx.database import Base


class LeadSubmission(Base):
    __tablename__ = 'lead_submissions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(Text, nullable=False)  # 'funnel' | 'appointment'
    session_id = Column(Text, nullable=True, index=True)
    address = Column(Text, default='')
    first_name = Column(Text, default='')
    last_name = Column(Text, default='')
    email = Column(Text, default='', index=True)
    phone = Column(Text, default='')
    user_type = Column(Text, nullable=True)
    timeline = Column(Text, nullable=True)
    webhook_status = Column(Text, default='pending')  # 'sent' | 'failed' | 'skipped'
    qualification_score = Column(Integer, nullable=True)
    priority_level = Column(Text, nullable=True)
    bonus_tier = Column(Text, nullable=True)
    fallback_used = Column(Boolean, default=False)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
