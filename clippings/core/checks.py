"""
Startup self-check for the remote endpoint configuration.
"""
from django.conf import settings
from django.core.checks import Warning, register

from .gateway import PLACEHOLDER_API_URL

APPS_SCRIPT_HOST = 'script.google.com'


@register()
def check_api_url(app_configs, **kwargs):
    """Warn when CLIPPINGS_API_URL still needs to be filled in"""
    api_url = getattr(settings, 'CLIPPINGS_API_URL', PLACEHOLDER_API_URL) or ''
    if api_url == PLACEHOLDER_API_URL or APPS_SCRIPT_HOST not in api_url:
        return [
            Warning(
                'API URL not configured!',
                hint='Set CLIPPINGS_API_URL to your Google Apps Script web app URL '
                     '(https://script.google.com/macros/s/.../exec).',
                id='clippings.W001',
            )
        ]
    return []
