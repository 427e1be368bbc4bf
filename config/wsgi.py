"""
WSGI config for agent_marketplace project.

Only serves the REST API. The Socket.IO chat relay needs the ASGI entry point
in ``config.asgi`` because it keeps long-lived connections open.
"""

import os
import sys
from pathlib import Path

from django.core.wsgi import get_wsgi_application

BASE_DIR = Path(__file__).resolve(strict=True).parent.parent
sys.path.append(str(BASE_DIR / "agent_marketplace"))
# If DJANGO_SETTINGS_MODULE is unset, select a sensible default based on BUILD_ENV
if "DJANGO_SETTINGS_MODULE" not in os.environ:
    build_env = os.environ.get("BUILD_ENV", "production").lower()
    os.environ.setdefault(
        "DJANGO_SETTINGS_MODULE",
        "config.settings.local" if build_env == "local" else "config.settings.production",
    )

application = get_wsgi_application()
