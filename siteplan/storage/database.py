from sqlalchemy import create_engine, Boolean, Column, Date, DateTime, Float, Integer, JSON, String
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
from siteplan.config.settings import get_settings

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, pool_pre_ping=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class ActivityModel(Base):
    __tablename__ = "activities"

    project_id = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, default=0)  # input order within the project
    name = Column(String, nullable=False)
    primary_trade = Column(String, nullable=False)
    planned_start = Column(Date, nullable=False)
    duration_days = Column(Integer, nullable=False)
    planned_total_cost = Column(Float, default=0.0)
    priority = Column(String, default="normal")
    predecessors = Column(JSON, nullable=False, default=list)  # [{activity_id, dependency_type, lag_days}]
    equipment_types = Column(JSON, nullable=False, default=list)  # List[str]
    kind = Column(String, nullable=True)
    weather_sensitive = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WorkforceModel(Base):
    __tablename__ = "workforce"

    project_id = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    trade = Column(String, nullable=False)
    hourly_rate = Column(Float, default=0.0)
    daily_hours = Column(Float, default=8.0)
    productivity_factor = Column(Float, default=1.0)
    available_from = Column(Date, nullable=True)
    available_until = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class EquipmentModel(Base):
    __tablename__ = "equipment"

    project_id = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    type = Column(String, nullable=False)
    daily_rental_cost = Column(Float, default=0.0)
    units = Column(Integer, default=1)
    productivity_factor = Column(Float, default=1.0)
    available_from = Column(Date, nullable=True)
    available_until = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
