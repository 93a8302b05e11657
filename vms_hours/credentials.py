"""
Credential storage in the operating system keychain.
"""

from dataclasses import dataclass

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import VMSHoursError


SERVICE_NAME = "magnit-vms-hour-logging-cli"
USERNAME_KEY = "username"
PASSWORD_KEY = "password"


class CredentialsError(VMSHoursError):
    """Raised when credentials cannot be stored or loaded."""
    pass


@dataclass
class Credentials:
    username: str
    password: str

    def __repr__(self):
        return f"Credentials(username={self.username!r}, password=***)"


def save_credentials(creds: Credentials):
    """
    Store username and password in the keychain.

    Raises:
        CredentialsError: If a field is empty or the keychain rejects the write
    """
    if not creds.username:
        raise CredentialsError("username is required")
    if not creds.password:
        raise CredentialsError("password is required")

    try:
        keyring.set_password(SERVICE_NAME, USERNAME_KEY, creds.username)
        keyring.set_password(SERVICE_NAME, PASSWORD_KEY, creds.password)
    except KeyringError as e:
        raise CredentialsError(f"save credentials to keyring: {e}")


def load_credentials() -> Credentials:
    """
    Load stored credentials.

    Raises:
        CredentialsError: If nothing is stored or the keychain is unavailable
    """
    try:
        username = keyring.get_password(SERVICE_NAME, USERNAME_KEY)
        password = keyring.get_password(SERVICE_NAME, PASSWORD_KEY)
    except KeyringError as e:
        raise CredentialsError(f"read credentials from keyring: {e}")

    if not username or not password:
        raise CredentialsError("credentials not found")
    return Credentials(username=username, password=password)


def delete_credentials():
    """Remove stored credentials; entries that are already gone are ignored."""
    for key in (USERNAME_KEY, PASSWORD_KEY):
        try:
            keyring.delete_password(SERVICE_NAME, key)
        except PasswordDeleteError:
            continue
        except KeyringError as e:
            raise CredentialsError(f"delete {key} from keyring: {e}")
