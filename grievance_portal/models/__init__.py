"""
Grievance Portal
Model package — shared SQLAlchemy handle.

Usage:
    from grievance_portal.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
