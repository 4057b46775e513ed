"""Services package - business logic layer."""
from messenger_bot.services.broadcast_service import BroadcastResult, BroadcastService
from messenger_bot.services.feedback_service import FeedbackService
from messenger_bot.services.graph_api import MessengerClient
from messenger_bot.services.login_flow_service import LoginFlowService
from messenger_bot.services.message_log_service import MessageLogService
from messenger_bot.services.outbound_service import OutboundService
from messenger_bot.services.studia3_service import Studia3Service
from messenger_bot.services.user_service import UserService
from messenger_bot.services.usos_oauth import TokenPair, UsosOAuthClient

__all__ = [
    "BroadcastResult",
    "BroadcastService",
    "FeedbackService",
    "MessengerClient",
    "LoginFlowService",
    "MessageLogService",
    "OutboundService",
    "Studia3Service",
    "UserService",
    "TokenPair",
    "UsosOAuthClient",
]
