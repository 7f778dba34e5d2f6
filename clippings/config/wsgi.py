"""
WSGI config for the Clippings project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'clippings.config.settings')

application = get_wsgi_application()
