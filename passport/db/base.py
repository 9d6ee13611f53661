"""Declarative base shared by all passport models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
