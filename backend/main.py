import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import engine, ensure_duty_hour_schema
from backend.models import user, appointment, availability
from backend.routes import availability_routes

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.CORS_ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        user.Base.metadata.create_all(bind=engine)
        appointment.Base.metadata.create_all(bind=engine)
        availability.Base.metadata.create_all(bind=engine)
        ensure_duty_hour_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(availability_routes.router, prefix='/availability')
