"""
WSGI entry point (the transport collaborator calls `application`).

Building the application instantiates `MIDDLEWARE`, which builds and freezes
the request pipeline; a bad `PIPELINE_STAGES` manifest aborts startup here.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "railsauth.settings.dev")

application = get_wsgi_application()
