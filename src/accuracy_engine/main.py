"""Entrypoint: run the Retrieval Accuracy Engine server."""

import uvicorn

from accuracy_engine.api.app import create_app
from accuracy_engine.config.settings import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
