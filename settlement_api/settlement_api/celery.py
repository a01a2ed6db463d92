import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'settlement_api.settings')

app = Celery('settlement_api')

# CELERY_-prefixed keys in Django settings configure the app
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
