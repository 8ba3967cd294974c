"""Service layer for business logic."""

from hvac_search.services.answer_synthesizer import AnswerSynthesizer
from hvac_search.services.auth_service import Authenticator, StaticSessionAuthenticator
from hvac_search.services.intent_router import IntentRouter
from hvac_search.services.search_service import SearchService

__all__ = [
    "AnswerSynthesizer",
    "Authenticator",
    "IntentRouter",
    "SearchService",
    "StaticSessionAuthenticator",
]
