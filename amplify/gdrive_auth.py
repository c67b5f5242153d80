# gdrive_auth.py
import os
import json
from google_auth_oauthlib.flow import InstalledAppFlow
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from .gdrive import SCOPES


def gdrive_authenticate(
    creds_path: str = "credentials.json", token_path: str = "gdrive_token.json"
):
    """
    Handles the OAuth 2.0 flow for Google Drive API.
    Reuses or refreshes an existing token, otherwise runs the browser flow with
    the client secrets in `creds_path`. The token is written to `token_path`;
    its content is what GDRIVE_TOKEN_JSON expects.
    """
    creds = None

    # Check if a token file already exists
    if os.path.exists(token_path):
        with open(token_path, "r") as token_file:
            creds = Credentials.from_authorized_user_info(json.load(token_file), SCOPES)

    if creds and creds.valid:
        print(f"Token in {token_path} is still valid.")
        return creds

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    else:
        if not os.path.exists(creds_path):
            print(f"Error: The path to the client secrets file is invalid: {creds_path}")
            return None
        with open(creds_path, "r") as secrets_file:
            client_config = json.load(secrets_file)
        flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
        creds = flow.run_local_server(port=0)

    # Save the credentials for the next run
    with open(token_path, "w") as token_file:
        token_file.write(creds.to_json())
    print(f"Token saved to {token_path}")
    return creds
