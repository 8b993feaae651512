"""SQLAlchemy database models for storing Builder ID claims"""
from sqlalchemy import Column, Integer, BigInteger, String, Float, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class BuilderIDRow(Base):
    """
    One minted Builder ID per FID.
    The unique constraint on fid is what settles concurrent claims.
    """
    __tablename__ = 'builder_ids'
    __table_args__ = (UniqueConstraint('fid', name='uq_builder_ids_fid'),)

    id = Column(Integer, primary_key=True)
    fid = Column(BigInteger, nullable=False, index=True)
    username = Column(String, nullable=False)
    wallet_address = Column(String, nullable=False, index=True)
    token_id = Column(BigInteger, nullable=True)
    image_url = Column(String, nullable=False, default='')
    metadata_url = Column(String, nullable=False, default='')
    tx_hash = Column(String, nullable=True)
    minted_at = Column(DateTime(timezone=True), nullable=False, index=True)
    builder_score = Column(Integer, nullable=True)
    neynar_score = Column(Float, nullable=True)
    talent_score = Column(Float, nullable=True)
    ethos_score = Column(Integer, nullable=True)
    ethos_level = Column(String, nullable=True)
    shipped_count = Column(Integer, nullable=True)
    power_badge = Column(Boolean, nullable=True)
