"""
ClientHub Portal
SQLAlchemy models package.

``db`` is the shared Flask-SQLAlchemy extension instance; model modules
import it from here and ``create_app`` binds it to the application.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
