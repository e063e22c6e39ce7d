"""Credential selection during fetch negotiation.

The remote offers a set of acceptable authentication mechanisms each time it
challenges. `CredentialResolver.resolve` maps that offer, together with the
repository's configured credential, to exactly one concrete credential or
raises `AuthenticationError`. A single fetch may challenge several times, so
the resolver keeps no state between calls.
"""

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from .config import Credentials, PasswordCredentials, SshCredentials
from .constants import APP_NAME
from .exceptions import AuthenticationError

logger = logging.getLogger(APP_NAME)


class AuthMechanism(enum.IntFlag):
    """Authentication mechanisms a remote may accept."""

    NONE = 0
    USERNAME = 1
    SSH_MEMORY = 2
    USERPASS_PLAINTEXT = 4


@dataclass(frozen=True)
class UsernameCredential:
    username: str


@dataclass(frozen=True)
class KeyCredential:
    username: str
    public_key: str | None
    private_key: str
    passphrase: str | None


@dataclass(frozen=True)
class PlaintextCredential:
    username: str
    password: str


ResolvedCredential = UsernameCredential | KeyCredential | PlaintextCredential


def read_private_key(ssh: SshCredentials) -> str:
    """Returns the private key material for an SSH credential.

    Args:
        ssh (SshCredentials): The configured credential.

    Returns:
        str: The literal key content, or the contents of the key file.

    Raises:
        AuthenticationError: If the key file cannot be opened or read.
    """
    if not ssh.private_key_path:
        return ssh.private_key

    path = Path(ssh.private_key).expanduser()
    try:
        return path.read_text()
    except FileNotFoundError as e:
        raise AuthenticationError(f"Could not open credentials file {path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise AuthenticationError(f"Could not read credentials file {path}") from e


class CredentialResolver:
    """Chooses a credential for one repository.

    Attributes:
        credentials (Credentials | None): The repository's configured credential.
    """

    def __init__(self, credentials: Credentials | None):
        self.credentials = credentials

    def resolve(
        self, url: str, username_from_url: str | None, allowed: AuthMechanism
    ) -> ResolvedCredential:
        """Selects the credential answering one authentication challenge.

        Mechanisms are tried in order: username only, in-memory SSH key,
        plaintext username/password. The first mechanism that is allowed and
        satisfied by the configured credential wins.

        Args:
            url (str): The URL being fetched.
            username_from_url (str | None): The username embedded in the URL, if any.
            allowed (AuthMechanism): The mechanisms the remote currently accepts.

        Returns:
            ResolvedCredential: The credential to hand back to the transport.

        Raises:
            AuthenticationError: If nothing is configured, or nothing configured
                matches the allowed mechanisms.
        """
        creds = self.credentials
        logger.debug(f"Credential challenge for {url}: {allowed!r}")

        if creds is None:
            raise AuthenticationError("Authentication is required")

        if AuthMechanism.USERNAME in allowed and creds.username:
            return UsernameCredential(creds.username)

        if AuthMechanism.SSH_MEMORY in allowed and isinstance(creds, SshCredentials):
            username = username_from_url or creds.username
            if not username:
                raise AuthenticationError("No username available for SSH key")
            return KeyCredential(
                username=username,
                public_key=creds.public_key,
                private_key=read_private_key(creds),
                passphrase=creds.passphrase,
            )

        if AuthMechanism.USERPASS_PLAINTEXT in allowed and isinstance(
            creds, PasswordCredentials
        ):
            username = creds.username or username_from_url
            if not username:
                raise AuthenticationError("No username available for password")
            return PlaintextCredential(username, creds.password)

        raise AuthenticationError("Unsupported authentication")
