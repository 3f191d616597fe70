"""
Pacy Training Content Generator
Database models package.

All models share the single Flask-SQLAlchemy instance defined here:

    from pacy.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
