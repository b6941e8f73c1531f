"""WSGI entry point for Gunicorn (gunicorn wsgi:app)."""
import sys
import os

# Ensure the project root is importable (config.py lives there)
sys.path.insert(0, os.path.dirname(__file__))

from app import create_app

app = create_app(os.getenv('APP_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run()
