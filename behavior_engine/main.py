"""
Entry point — start the Behavioral Signal Engine.

Usage:
    python -m behavior_engine.main
    uvicorn behavior_engine.api.app:app --host 127.0.0.1 --port 8766 --reload
"""

import uvicorn
from .config import config


def main():
    uvicorn.run(
        "behavior_engine.api.app:app",
        host=config.api_host,
        port=config.api_port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
