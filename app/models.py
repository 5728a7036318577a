"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import BigInteger, Column, Integer, String, Text

from app.storage import Base


class Message(Base):
    """
    SQLAlchemy model for anonymous guestbook messages.

    Table: messages
    Primary Key: id (autoincrement, grows with insertion order)
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False, index=True)  # epoch milliseconds


class RateLimitEntry(Base):
    """
    Last accepted write per hashed client key.

    Table: rate_limits
    Primary Key: ip_hash (upsert target)
    """
    __tablename__ = "rate_limits"

    ip_hash = Column(String(64), primary_key=True)
    last_ts = Column(BigInteger, nullable=False)  # epoch milliseconds
