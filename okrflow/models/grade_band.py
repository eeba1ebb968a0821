from sqlalchemy import Column, Integer, String, Float
from okrflow.database import Base


class GradeBand(Base):
    __tablename__ = "grade_bands"

    id = Column(Integer, primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)  # scan order
    grade = Column(String, nullable=False)
    min_score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)  # inclusive
    quota = Column(Float, nullable=False, default=0)  # percent of team
    description = Column(String, nullable=True)

    def __repr__(self):
        return f"<GradeBand {self.grade} [{self.min_score}, {self.max_score}]>"
