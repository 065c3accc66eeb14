"""
FinTrack: personal finance tracker with local and Google Drive storage.

This package provides:

- :mod:`FinTrack.core` – Data model, local cache, Google OAuth, the Drive document store and helper services.
- :mod:`FinTrack.server` – The FastAPI proxy exposing the auth and drive endpoints.
- :mod:`FinTrack.client` – Session bridge and the sync orchestrator keeping in-memory state and storage in agreement.
- :mod:`FinTrack.data` – Dashboard analytics (:func:`FinTrack.data.data.get_summary`) built on pandas.
- :mod:`FinTrack.settings` – Settings management and schema validation.
- :mod:`FinTrack.log` – Logging setup with an in-memory log tank.

Use :func:`FinTrack.exec_` to launch the server.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('FinTrack requires Python 3.11 or higher.')

__version__ = '0.1.0'
__author__ = 'Gergely Wootsch'
__license__ = 'GPL-3.0'
__copyright__ = 'Copyright (C) 2025 Gergely Wootsch'
__description__ = 'FinTrack: personal finance tracker with local and Google Drive storage.'
__email__ = 'hello+ExpenseTracker@gergely-wootsch.com'

from .log import log

log.setup_logging()


def exec_() -> None:
    """Launch the FinTrack HTTP server and block until it exits.

    Host and port are read from the ``server`` settings section.
    """
    import uvicorn
    from .server import app
    from .settings import lib

    config = lib.settings.get_section('server')
    uvicorn.run(
        app.app,
        host=config.get('host', '0.0.0.0'),
        port=int(config.get('port', 3000)),
        log_config=None,
    )


if __name__ == '__main__':
    exec_()
