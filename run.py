# run.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file for local development.
# This should be the first thing to run.
load_dotenv()

from simplechain import setup_logging
from simplechain.api import create_ledger_app
from simplechain.config import Config

setup_logging(Config.LOG_LEVEL, Config.LOG_FILE)
app = create_ledger_app()

# For production, use a WSGI server like Gunicorn (`gunicorn run:app`).
if __name__ == '__main__':
    port = int(os.environ.get('PORT', Config.API_PORT))
    app.run(host=Config.API_HOST, port=port, debug=False)
