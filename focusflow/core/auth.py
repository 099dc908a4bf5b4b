"""Credential-based accounts: sign-up and password verification."""

import logging
import sqlite3
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from werkzeug.security import check_password_hash, generate_password_hash

from focusflow.core.errors import FocusFlowError, UpstreamFailure, ValidationError
from focusflow.core.models import User
from focusflow.core.schemas import SigninRequest, SignupRequest
from focusflow.persistence.store import FocusStore

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, store: FocusStore) -> None:
        self.store = store

    def signup(self, data: Any) -> dict[str, Any]:
        """Register a user.  Returns ``{"success", "user"}`` or an error result."""
        try:
            if not isinstance(data, dict):
                raise ValidationError()
            try:
                payload = SignupRequest.model_validate(data)
            except PydanticValidationError as exc:
                raise ValidationError.from_pydantic(exc) from exc

            email = payload.email.lower()
            if self.store.get_user_by_email(email) is not None:
                raise ValidationError("User already exists")
            try:
                user = self.store.add_user(email, generate_password_hash(payload.password), payload.name)
            except sqlite3.IntegrityError as exc:
                raise ValidationError("User already exists") from exc
            except Exception as exc:
                logger.exception("Failed to register user")
                raise UpstreamFailure("Internal server error") from exc
        except FocusFlowError as exc:
            return exc.to_result()
        logger.info("Registered user %s", user.id)
        return {"success": True, "user": user.to_dict()}

    def authenticate(self, data: Any) -> Optional[User]:
        """Return the user for valid credentials, else ``None``."""
        if not isinstance(data, dict):
            return None
        try:
            creds = SigninRequest.model_validate(data)
        except PydanticValidationError:
            return None
        user = self.store.get_user_by_email(creds.email.lower())
        if user is None or not check_password_hash(user.password_hash, creds.password):
            logger.info("Failed sign-in attempt for %s", creds.email)
            return None
        return user
