"""Server entrypoint"""

import uvicorn

from chatvibes_api.app import create_app
from chatvibes_api.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
