"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app --worker-class gthread --threads 8
    flask --app wsgi db upgrade
    python wsgi.py                     # dev server on $PORT (default 3001)
"""

from pacy import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.config["PORT"], threaded=True)
