"""Environment settings for the HTTP service layer."""

from commons_http.settings.app import HttpSettings, get_settings


__all__ = [
    "HttpSettings",
    "get_settings",
]
