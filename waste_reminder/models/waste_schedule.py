from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from waste_reminder.db.base import Base


class WasteType(Base):
    __tablename__ = "waste_types"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class WasteSchedule(Base):
    """Collection days for one waste type in one city (optionally one street) and month. Read-only here."""

    __tablename__ = "waste_schedules"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    city_id: Mapped[int] = mapped_column(ForeignKey("cities.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL street: schedule applies to every street of the city
    street_id: Mapped[int | None] = mapped_column(ForeignKey("streets.id", ondelete="CASCADE"), nullable=True, index=True)
    waste_type_id: Mapped[int] = mapped_column(ForeignKey("waste_types.id", ondelete="CASCADE"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[str] = mapped_column(String(2), nullable=False)  # "1".."12"
    days: Mapped[str] = mapped_column(Text, nullable=False)  # JSON array of day-of-month ints
