from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    credit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    semester_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
