# backend/wsgi.py
from snacktab import create_app

app = create_app()
