import uvicorn

from wakeword_service.api.app import app
from wakeword_service.core.di import get_config


def main() -> None:
    server = get_config().server
    uvicorn.run(app, host=server.host, port=server.port)


if __name__ == "__main__":
    main()
