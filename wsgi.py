"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi run
    flask --app wsgi seed-rules
    flask --app wsgi db upgrade
"""

from grievance_portal import create_app

app = create_app()
