"""Google OAuth credentials shared by the Gmail and Sheets clients."""

import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from .config import CONFIG_DIR

logger = logging.getLogger(__name__)


def get_credentials(
    scopes: list[str], token_name: str, config_dir: Path = CONFIG_DIR
) -> Credentials:
    """Get or refresh API credentials, caching the token under config_dir."""
    token_path = config_dir / token_name
    credentials_path = config_dir / "credentials.json"

    creds = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), scopes)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logger.info(f"Refreshing expired credentials for {token_name}")
            creds.refresh(Request())
        else:
            if not credentials_path.exists():
                raise FileNotFoundError(
                    f"Credentials file not found: {credentials_path}. "
                    "Download credentials.json from Google Cloud Console."
                )
            logger.info(f"Starting OAuth flow for {token_name}")
            flow = InstalledAppFlow.from_client_secrets_file(
                str(credentials_path), scopes
            )
            creds = flow.run_local_server(port=0)

        token_path.parent.mkdir(parents=True, exist_ok=True)
        with open(token_path, "w") as token:
            token.write(creds.to_json())
            logger.info(f"Saved credentials to {token_path}")

    return creds
