"""Run the MMK Today HTTP server."""

import uvicorn

from server.app import PORT


def main() -> None:
    """Serve the API and the built frontend."""
    uvicorn.run("server.app:app", host="0.0.0.0", port=PORT, reload=False)


if __name__ == "__main__":
    main()
