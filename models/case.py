from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from models.base import Base, TimestampMixin


class Case(Base, TimestampMixin):
    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    actions = Column(String(300), nullable=True)
    description = Column(Text, nullable=True)
    reported_by = Column(String(255), nullable=True)

    # Tally columns are only written by the vote ledger
    verdict_score = Column(Integer, nullable=False, default=0)
    total_votes = Column(Integer, nullable=False, default=0)
    guilty_votes = Column(Integer, nullable=False, default=0)
    not_guilty_votes = Column(Integer, nullable=False, default=0)
    last_voted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def verdict_status(self) -> str:
        if self.verdict_score > 0:
            return "Guilty"
        if self.verdict_score < 0:
            return "Not Guilty"
        return "Pending"

    @property
    def verdict_confidence(self) -> float:
        if not self.total_votes:
            return 0.0
        dominant = max(self.guilty_votes, self.not_guilty_votes)
        return dominant / self.total_votes * 100


Index("idx_case_name", Case.name)
Index("idx_case_email", Case.email)
Index("idx_case_phone", Case.phone)
Index("idx_case_verdict", Case.verdict_score)
Index("idx_case_created_at", Case.created_at.desc())
