# WSGI entry point
# Serve with any WSGI server, e.g. `gunicorn --threads 8 wsgi:application`

import os

# Load environment variables from .env file if present
from dotenv import load_dotenv

project_path = os.path.dirname(os.path.abspath(__file__))
env_path = os.path.join(project_path, '.env')
if os.path.exists(env_path):
    load_dotenv(env_path)

# Import the Flask app
from keycabinet.main import create_app

application = create_app()
