"""Lancement local : `python -m app` (uvicorn sur settings.HOST:settings.PORT)."""
import uvicorn

from app.config.settings import settings


def main() -> None:
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
