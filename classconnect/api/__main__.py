from __future__ import annotations

import uvicorn

from . import settings as _settings
from .app import create_app
from .logging_config import configure_logging


def main() -> None:
    _settings.load_dotenv()
    configure_logging()
    uvicorn.run(create_app(), host=_settings.host(), port=_settings.port(), log_config=None)


if __name__ == "__main__":
    main()
