# backend/wsgi.py
# FLASK_APP entry point: python -m flask --app wsgi.py <group> <command>
from stockroom import create_app

app = create_app()
