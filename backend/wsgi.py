# backend/wsgi.py
from greenstore import create_app

app = create_app()
