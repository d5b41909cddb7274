"""Declarative base shared by every PermitFlow model."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
