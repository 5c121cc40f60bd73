import enum

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Index, UniqueConstraint
from models.base import Base, utcnow


class VoteChoice(str, enum.Enum):
    GUILTY = "guilty"
    NOT_GUILTY = "not_guilty"


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("voter_identity", "case_id", name="uq_vote_voter_case"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # "email:<addr>" or "ip:<addr>"
    voter_identity = Column(String(300), nullable=False)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    choice = Column(Enum(VoteChoice, values_callable=lambda e: [m.value for m in e], name="vote_choice"), nullable=False)
    cast_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


Index("idx_vote_case", Vote.case_id)
