from typing import Optional
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "An error occurred. Please try again later."
        super().__init__(self.message)

class ValidationError(AppError):
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=400, user_message=user_message or message)

class PersistenceError(AppError):
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(
            message,
            status_code=500,
            user_message=user_message or "Message couldn't be sent. Please try again."
        )

class NotFoundError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=404, user_message=message)

class ErrorHandler:
    @staticmethod
    def handle_status_error(error: Exception) -> None:
        logger.error(f"Status update error: {str(error)}")

    @staticmethod
    def handle_notification_error(error: Exception) -> None:
        logger.error(f"Webhook notification error: {str(error)}")
