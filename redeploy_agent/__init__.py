"""Redeploy agent package."""

__version__ = "1.0.0"

from .config import Settings
from .models import DeploymentResult, PushNotification, RepositoryRecord

__all__ = ["Settings", "PushNotification", "RepositoryRecord", "DeploymentResult", "__version__"]
