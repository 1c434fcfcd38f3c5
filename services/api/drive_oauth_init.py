# One-time OAuth flow that writes creds/drive_token.json, used by core/drive_client.py
# when photos should be owned by a personal Google account instead of the service account.
from __future__ import annotations

from google_auth_oauthlib.flow import InstalledAppFlow
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from core.drive_client import CREDS_DIR, SCOPES, TOKEN_FILE

CLIENT_SECRET_FILE = CREDS_DIR / "drive_oauth_client.json"


def main():
    if not CLIENT_SECRET_FILE.exists():
        raise SystemExit(
            f"Missing {CLIENT_SECRET_FILE}. "
            "Download the OAuth desktop client JSON and save it there."
        )

    creds = None
    if TOKEN_FILE.exists():
        creds = Credentials.from_authorized_user_file(str(TOKEN_FILE), SCOPES)

    if creds and creds.valid:
        print(f"✅ Existing token at {TOKEN_FILE} is still valid")
        return

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
    else:
        flow = InstalledAppFlow.from_client_secrets_file(str(CLIENT_SECRET_FILE), SCOPES)
        # Opens the browser for consent
        creds = flow.run_local_server(port=0)

    CREDS_DIR.mkdir(parents=True, exist_ok=True)
    TOKEN_FILE.write_text(creds.to_json())
    print(f"✅ Drive OAuth token saved to {TOKEN_FILE}")


if __name__ == "__main__":
    main()
