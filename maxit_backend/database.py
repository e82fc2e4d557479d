from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, create_engine

from maxit_backend.constants import DATABASE_URL

engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)
