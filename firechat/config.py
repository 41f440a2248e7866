import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Also check current directory
if not os.getenv("FIREBASE_API_KEY"):
    load_dotenv()


# Author name used until a signed-in user supplies a display name
ANONYMOUS = "anonymous"

# Remote config
MSG_LENGTH_KEY = "friendly_msg_length"
DEFAULT_MSG_LENGTH_LIMIT = 1000
CACHE_EXPIRATION_SECONDS = 3600

# Seconds the finished upload stays visible before the progress bar resets
PROGRESS_RESET_DELAY = 5.0

# Request codes for results delivered back to the chat screen
RC_SIGN_IN = 1
RC_PHOTO_PICKER = 2
RC_PHOTO_CAMERA = 3
REQUEST_CODE_PERMISSIONS = 10

PHOTO_MIME_TYPE = "image/jpeg"


class Settings:
    # Firebase project
    FIREBASE_API_KEY: str = os.getenv("FIREBASE_API_KEY", "")
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_APP_ID: str = os.getenv("FIREBASE_APP_ID", "")
    FIREBASE_DATABASE_URL: str = os.getenv(
        "FIREBASE_DATABASE_URL",
        f"https://{os.getenv('FIREBASE_PROJECT_ID', 'firechat')}-default-rtdb.firebaseio.com",
    ).rstrip("/")
    FIREBASE_STORAGE_BUCKET: str = os.getenv(
        "FIREBASE_STORAGE_BUCKET",
        f"{os.getenv('FIREBASE_PROJECT_ID', 'firechat')}.appspot.com",
    )

    # Service endpoints (overridable for emulators)
    IDENTITY_TOOLKIT_URL: str = os.getenv(
        "IDENTITY_TOOLKIT_URL", "https://identitytoolkit.googleapis.com/v1"
    ).rstrip("/")
    SECURE_TOKEN_URL: str = os.getenv(
        "SECURE_TOKEN_URL", "https://securetoken.googleapis.com/v1"
    ).rstrip("/")
    STORAGE_URL: str = os.getenv(
        "STORAGE_URL", "https://firebasestorage.googleapis.com/v0"
    ).rstrip("/")
    REMOTE_CONFIG_URL: str = os.getenv(
        "REMOTE_CONFIG_URL", "https://firebaseremoteconfig.googleapis.com/v1"
    ).rstrip("/")

    # Google sign-in (OAuth client used by the sign-in dialog)
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REDIRECT_URL: str = os.getenv("GOOGLE_REDIRECT_URL", "http://localhost:8550/oauth_callback")

    # Database and storage locations
    MESSAGES_PATH: str = os.getenv("MESSAGES_PATH", "messages")
    PHOTOS_PATH: str = os.getenv("PHOTOS_PATH", "chat_photos")

    # Local storage for the saved session and captured pictures
    FIRECHAT_HOME: Path = Path(os.getenv("FIRECHAT_HOME", str(Path.home() / ".firechat"))).expanduser()
    PICTURES_DIR: Path = FIRECHAT_HOME / "pictures"
    SESSION_FILE: Path = FIRECHAT_HOME / "session.json"

    # HTTP
    HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "30"))

    # Development
    # Developer mode disables the remote config cache window
    DEBUG: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")


settings = Settings()
