"""Business-date provider.

Endpoints receive "today" through this dependency so edit-window and
service-agreement checks can be pinned in tests.
"""

from datetime import date


def get_today() -> date:
    return date.today()
