"""
ASGI entry point.

    uvicorn main:app --app-dir backend --port 3456
    python backend/main.py
"""

import uvicorn

from connector.app import create_app_from_env

app = create_app_from_env()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.config.port)
