"""
Session Manager - Handles persistent sign-in state
Saves and loads the signed-in user from local file storage so a restart
does not force a new sign-in
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from firechat.models import AuthUser

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages the saved session file"""

    def __init__(self, session_file: Path):
        self.session_file = Path(session_file)

    def save_session(self, user: AuthUser) -> bool:
        """
        Save the signed-in user to the session file

        Args:
            user: User returned by the identity provider

        Returns:
            True if the file was written
        """
        try:
            self.session_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.session_file, 'w') as f:
                json.dump(user.model_dump(by_alias=True), f)
            logger.debug(f"Session saved for {user.email or user.uid}")
            return True
        except OSError as e:
            logger.error(f"Error saving session: {e}")
            return False

    def load_session(self) -> Optional[AuthUser]:
        """
        Load the saved user

        Returns:
            AuthUser or None when there is no usable session
        """
        if not self.session_file.exists():
            logger.debug("No saved session found")
            return None

        try:
            with open(self.session_file, 'r') as f:
                session_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading session: {e}")
            return None

        # Validate required fields
        required_fields = ['localId', 'idToken', 'refreshToken']
        if not isinstance(session_data, dict) or not all(session_data.get(f) for f in required_fields):
            logger.warning("Session file corrupted - missing required fields")
            self.clear_session()
            return None

        try:
            user = AuthUser.model_validate(session_data)
        except ValidationError as e:
            logger.warning(f"Session file corrupted: {e}")
            self.clear_session()
            return None

        logger.debug(f"Session loaded for {user.email or user.uid}")
        return user

    def clear_session(self) -> bool:
        """Clear saved session"""
        try:
            if self.session_file.exists():
                self.session_file.unlink()
                logger.debug("Session cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing session: {e}")
            return False

    def session_exists(self) -> bool:
        """Check if session file exists"""
        return self.session_file.exists()

    def update_tokens(self, id_token: Optional[str] = None, refresh_token: Optional[str] = None) -> bool:
        """Update only tokens in existing session"""
        user = self.load_session()
        if user is None:
            logger.debug("No session to update")
            return False

        if id_token:
            user.id_token = id_token
        if refresh_token:
            user.refresh_token = refresh_token
        return self.save_session(user)
