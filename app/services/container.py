from app.config import get_config
from app.services.application_service import ApplicationService
from app.services.auth_service import AuthService

config = get_config()

# Initialize services
application_service = ApplicationService(config)
auth_service = AuthService(config)
