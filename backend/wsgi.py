# backend/wsgi.py
from dealdesk import create_app

app = create_app()
