"""Main application entry point"""

import uvicorn

from .api.app import app
from .core import load_config


def main():
    """Run the application"""
    config = load_config()
    app.state.config = config

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        reload=False,
        log_level=config.server.log_level.lower(),
    )


if __name__ == "__main__":
    main()
