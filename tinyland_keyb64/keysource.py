"""Codec key resolution from the environment or a KeePassXC database.

The codec itself has no opinion on key management. This module covers the
two sources the CLI supports:
  - An environment variable (``KEYB64_KEY`` by default)
  - An entry attribute in a KDBX database, read in-process via pykeepass
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pykeepass import PyKeePass
from pykeepass.exceptions import CredentialsError

logger = logging.getLogger(__name__)

DEFAULT_KEY_ENV = "KEYB64_KEY"


class KeySourceError(Exception):
    """Base exception for key resolution."""


class DatabaseNotFoundError(KeySourceError):
    """Raised when the KDBX database file does not exist."""


class AuthenticationError(KeySourceError):
    """Raised when database credentials are invalid."""


class EntryNotFoundError(KeySourceError):
    """Raised when a requested entry path or attribute does not exist."""


def key_from_env(var: str = DEFAULT_KEY_ENV) -> bytes:
    """Return the codec key held in environment variable ``var``."""
    value = os.environ.get(var)
    if not value:
        raise KeySourceError(f"environment variable {var} is not set or empty")
    logger.debug("Using codec key from environment variable %s", var)
    return value.encode("utf-8")


def open_database(
    database_path: Optional[str] = None,
    password: Optional[str] = None,
    keyfile: Optional[str] = None,
) -> PyKeePass:
    """Open a KeePassXC database.

    Args:
        database_path: Path to the .kdbx file. Defaults to
            KEEPASS_DATABASE_PATH environment variable.
        password: Master password. Defaults to KEEPASS_PASSWORD
            environment variable.
        keyfile: Optional path to a key file.

    Raises:
        DatabaseNotFoundError: If the database file does not exist.
        AuthenticationError: If the credentials are invalid.
        KeySourceError: For other database errors.
    """
    if database_path is None:
        database_path = os.environ.get("KEEPASS_DATABASE_PATH", "")
    if password is None:
        password = os.environ.get("KEEPASS_PASSWORD")

    if not database_path:
        raise KeySourceError(
            "No database path provided. Set KEEPASS_DATABASE_PATH or pass database_path."
        )

    db_path = Path(database_path).expanduser().resolve()
    if not db_path.is_file():
        raise DatabaseNotFoundError(f"Database not found: {db_path}")

    try:
        return PyKeePass(str(db_path), password=password, keyfile=keyfile)
    except CredentialsError:
        # Do not leak the password or pykeepass internals
        raise AuthenticationError(
            "Failed to open database (wrong password or corrupted file?)"
        ) from None
    except Exception as exc:
        raise KeySourceError(f"Failed to open database: {exc}") from exc


def find_entry(kp: PyKeePass, entry_path: str):
    """Find an entry by its slash-separated path, e.g. ``apps/relay/b64key``.

    Every component but the last names a group; the last is the entry title.
    Returns the pykeepass Entry or None.
    """
    parts = [p for p in entry_path.strip("/").split("/") if p]
    if not parts:
        return None

    group = kp.root_group
    for gname in parts[:-1]:
        group = next((sub for sub in group.subgroups if sub.name == gname), None)
        if group is None:
            return None

    return next((e for e in group.entries if e.title == parts[-1]), None)


_STANDARD_ATTRIBUTES = ("password", "username", "url", "notes", "title")


def entry_attribute(entry, attr: str) -> Optional[str]:
    """Return a standard or custom attribute of a pykeepass Entry."""
    if attr.lower() in _STANDARD_ATTRIBUTES:
        return getattr(entry, attr.lower())
    return entry.get_custom_property(attr)


def key_from_kdbx(
    entry_path: str,
    database_path: Optional[str] = None,
    password: Optional[str] = None,
    keyfile: Optional[str] = None,
    attribute: str = "password",
) -> bytes:
    """Read the codec key from a KDBX entry attribute.

    Returns:
        The attribute value encoded as UTF-8.

    Raises:
        EntryNotFoundError: If the entry or attribute is missing or empty.
        KeySourceError: For database errors.
    """
    kp = open_database(database_path, password, keyfile)

    entry = find_entry(kp, entry_path)
    if entry is None:
        raise EntryNotFoundError(f"Entry not found: {entry_path}")

    value = entry_attribute(entry, attribute)
    if not value:
        raise EntryNotFoundError(
            f"Attribute '{attribute}' not found on entry '{entry_path}'"
        )
    logger.debug("Using codec key from KDBX entry %s (%s)", entry_path, attribute)
    return value.encode("utf-8")
