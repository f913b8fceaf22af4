# wsgi.py
from voicerouter import create_app

# Create the Flask app instance using the factory for the WSGI server (e.g., Gunicorn)
# create_app() loads the appropriate config (which loads .env) based on FLASK_ENV
application = create_app()

# Example Gunicorn command: gunicorn --bind 0.0.0.0:5000 wsgi:application
