# Overview: Flask extension instances for the database and live queries.

from flask_sqlalchemy import SQLAlchemy

from .live_query import LiveQueryRegistry

db = SQLAlchemy()
live_queries = LiveQueryRegistry()
