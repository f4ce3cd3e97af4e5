from prometheus_fastapi_instrumentator import Instrumentator

from .app import create_app
from .core.logging import configure_logging

configure_logging()
app = create_app()
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, include_in_schema=False)


def run() -> None:
    import uvicorn

    from .core.config import settings

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)
