"""
WSGI entry point.

    gunicorn --config gunicorn.conf.py "app:application"

Development server:

    FLASK_ENV=development python app.py [--host HOST] [--port PORT]
"""

import argparse
import os

from bizreg.app import create_app

application = create_app(os.getenv("FLASK_ENV"))
app = application


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the bizreg development server")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    args = parser.parse_args()
    application.run(host=args.host, port=args.port, debug=application.config.get("DEBUG", False))


if __name__ == "__main__":
    main()
