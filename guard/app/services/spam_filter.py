"""Honeypot spam filter.

Public forms render a field that humans never see. Automated submitters
tend to fill every field, so any value other than null or an empty
string marks the request as spam.
The caller answers such requests with an ordinary success body and stops:
the bot learns nothing, and no quota, storage or audit entry is touched.
"""

from typing import Any, Mapping

from guard.app.core.config import settings


class SpamFilter:
    """Stateless check of the concealed form field."""

    def __init__(self, field_name: str | None = None):
        self.field_name = field_name or settings.honeypot_field

    def is_spam(self, payload: Any) -> bool:
        """Return True if the honeypot field carries any value but None or "".

        Non-mapping payloads (lists, scalars, None) have no honeypot and
        are never spam; schema validation deals with them later.
        """
        if not isinstance(payload, Mapping):
            return False
        value = payload.get(self.field_name)
        return value is not None and value != ""
