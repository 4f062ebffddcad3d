"""Run the persistence API with uvicorn."""

import uvicorn

from calorie_chat.config import Settings


def main() -> None:
    """Serve the ASGI app on the configured fixed port."""
    settings = Settings()
    uvicorn.run("calorie_chat.api.asgi:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
