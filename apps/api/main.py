"""uvicorn entrypoint for the Marginalia API.

    uvicorn main:app --app-dir apps/api --reload

or `python apps/api/main.py` for a local server on API_HOST:API_PORT
(default 127.0.0.1:8000). Building the app here keeps `marginalia.app`
importable without settings in place.
"""

import os

import uvicorn

from marginalia.app import add_request_id_middleware, create_app

app = create_app()
# Registered last so it wraps everything, auth failures included
add_request_id_middleware(app)

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.environ.get("API_HOST", "127.0.0.1"),
        port=int(os.environ.get("API_PORT", "8000")),
        log_config=None,
    )
