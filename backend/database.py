import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_duty_hour_schema_checked = False


def ensure_duty_hour_schema() -> None:
    global _duty_hour_schema_checked

    if _duty_hour_schema_checked:
        return

    with _schema_lock:
        if _duty_hour_schema_checked:
            return

        inspector = inspect(engine)

        if 'doctor_availability' not in inspector.get_table_names():
            _duty_hour_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctor_availability')}
        migration_steps = [
            ('clinic_id', 'ALTER TABLE doctor_availability ADD COLUMN clinic_id VARCHAR'),
            ('archived_at', 'ALTER TABLE doctor_availability ADD COLUMN archived_at TIMESTAMP WITH TIME ZONE'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_doctor_availability_archive '
                    'ON doctor_availability(archived_at, available_timeend)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_doctor_availability_doctor_start '
                    'ON doctor_availability(doctor_user_id, available_timestart)'
                )
            )

        _duty_hour_schema_checked = True
