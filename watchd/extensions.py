"""Flask extensions for the application."""
from flask_mail import Mail
from flask_wtf.csrf import CSRFProtect

from .core.queue import NotificationQueue

mail = Mail()
csrf = CSRFProtect()
notification_queue = NotificationQueue()
