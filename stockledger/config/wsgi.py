"""
WSGI config for the stockledger project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'stockledger.config.settings')

application = get_wsgi_application()
