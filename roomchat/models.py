from sqlalchemy import Column, Integer, BigInteger, String, Text, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class ConnectionLog(Base):
    __tablename__ = "connection_logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    socket_id = Column(String, nullable=False)
    username = Column(String, nullable=False)
    room = Column(String, nullable=False)
    action = Column(String, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    ip_address = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_connection_logs_room", "room"),
        Index("idx_connection_logs_timestamp", "timestamp"),
    )

class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    socket_id = Column(String, nullable=False)
    username = Column(String, nullable=False)
    room = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_chat_messages_room", "room"),
        Index("idx_chat_messages_timestamp", "timestamp"),
        Index("idx_chat_messages_username", "username"),
    )
