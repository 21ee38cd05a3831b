# backend/wsgi.py
from medpos import create_app

app = create_app()
