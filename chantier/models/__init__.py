"""
Chantier Tracker
SQLAlchemy extension instance shared by every model module.

Usage:
    from chantier.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
