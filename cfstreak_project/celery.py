import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'cfstreak_project.settings')

app = Celery('cfstreak_project')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
