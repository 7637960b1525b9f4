"""
WSGI entry point.

Usage:
    flask --app wsgi run
    flask --app wsgi seed-agenda-templates
    flask --app wsgi collab-serve
"""

from cadence import create_app

app = create_app()
