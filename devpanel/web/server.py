"""
Entry point of the dashboard process, served by Hypercorn:

    python -m hypercorn --bind 127.0.0.1:8765 devpanel.web.server:app
"""
import setproctitle
import devpanel.settings as default_settings
setproctitle.setproctitle(default_settings.DASHBOARD_PROCESS_TITLE)

import logging
from devpanel.log import setup_logging
from devpanel.web.setup import create_app

setup_logging(console_level=logging.INFO)

app = create_app()
