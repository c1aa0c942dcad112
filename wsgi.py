"""
WSGI entry point for gunicorn and the ``flask`` CLI.

    gunicorn wsgi:app
    FLASK_APP=wsgi flask db upgrade
    FLASK_APP=wsgi flask seed-templates
"""

from clienthub import create_app

app = create_app()
