"""
Test settings: SQLite in memory, eager Celery, in-memory e-mail.
"""
from .settings import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

TRANSIENT_RETRY_BASE_DELAY_MS = 0
TRANSIENT_RETRY_MAX_DELAY_MS = 0

CACHES = {
    'default': {'BACKEND': 'django.core.cache.backends.dummy.DummyCache'},
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_RATES': {
        'anon': None,
        'user': None,
        'registration': None,
    },
}
