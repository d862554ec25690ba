"""Local development entry point.

Usage:
    python run.py              # development config on port 5001
    PORT=8080 python run.py

First run:
    flask db upgrade
    flask seed-packages
"""

import os

from dotenv import load_dotenv

load_dotenv()  # .env must be loaded before the config classes read os.environ

from app import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(
        debug=app.config["DEBUG"],
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 5001)),
    )
