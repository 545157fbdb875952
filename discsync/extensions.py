"""
Shared Flask extensions

Services import ``db`` from here; create_app() binds it to the application.
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
