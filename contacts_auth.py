import json
import logging
import os

import keyring
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from contacts_config import CLIENT_SECRET_FILE, KEYRING_SERVICE, KEYRING_TOKEN_KEY, SCOPES


def _load_cached_credentials():
    token = keyring.get_password(KEYRING_SERVICE, KEYRING_TOKEN_KEY)
    if not token:
        return None
    try:
        return Credentials.from_authorized_user_info(json.loads(token), SCOPES)
    except (ValueError, json.JSONDecodeError) as e:
        logging.warning(f"Ignoring unreadable cached Google token: {e}")
        return None


def load_credentials(client_secret_file: str = CLIENT_SECRET_FILE):
    """Cached token if still usable, refreshed if expired, otherwise a new OAuth2 flow."""
    creds = _load_cached_credentials()

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logging.info("Refreshing expired Google API token.")
            creds.refresh(Request())
        else:
            if not os.path.exists(client_secret_file):
                logging.error(f"'{client_secret_file}' not found.")
                raise FileNotFoundError(f"'{client_secret_file}' not found.")
            logging.info("Initiating new Google OAuth2 flow.")
            flow = InstalledAppFlow.from_client_secrets_file(client_secret_file, SCOPES)
            creds = flow.run_local_server(port=0)
        keyring.set_password(KEYRING_SERVICE, KEYRING_TOKEN_KEY, creds.to_json())
        logging.info("Saved Google API token to the system keyring.")
    return creds


def clear_credentials() -> bool:
    """Forget the cached token so the next sign-in can pick another account."""
    if keyring.get_password(KEYRING_SERVICE, KEYRING_TOKEN_KEY) is None:
        return False
    keyring.delete_password(KEYRING_SERVICE, KEYRING_TOKEN_KEY)
    logging.info("Removed cached Google API token.")
    return True


def build_people_service(client_secret_file: str = CLIENT_SECRET_FILE):
    creds = load_credentials(client_secret_file)
    try:
        return build("people", "v1", credentials=creds)
    except Exception as e:
        raise RuntimeError(f"Cannot reach the Google People API: {e}") from e
