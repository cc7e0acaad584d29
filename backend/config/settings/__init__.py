"""
Settings package for the course commerce back office.
Uses modular approach with base/dev/prod/testing settings.

``DJANGO_SETTINGS_MODULE=backend.config.settings`` picks the module named by
``DJANGO_ENV``. Pointing Django at a submodule directly (as the test suite
does with ``backend.config.settings.testing``) loads only that module.
"""
import os

if os.environ.get('DJANGO_SETTINGS_MODULE', __name__) == __name__:
    DJANGO_ENV = os.environ.get('DJANGO_ENV', 'development')

    if DJANGO_ENV == 'production':
        from .production import *
    elif DJANGO_ENV == 'testing':
        from .testing import *
    else:
        from .development import *
