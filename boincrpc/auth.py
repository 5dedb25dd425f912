from __future__ import annotations

"""GUI RPC password discovery and challenge-response helpers.

The daemon stores its RPC password in ``gui_rpc_auth.cfg`` inside its data
directory. This module resolves that password the same way for every entry
point (explicit argument, environment, well-known files) and computes the
nonce hash sent during the ``auth1``/``auth2`` exchange.
"""

import hashlib
import os

PASSWORD_FILE_NAME = "gui_rpc_auth.cfg"

_DATA_DIRECTORIES = (
    os.path.join(os.sep, "var", "lib", "boinc-client"),
    os.path.join(os.sep, "var", "lib", "boinc"),
)


def compute_nonce_hash(nonce: str, password: str) -> str:
    """Return the hex MD5 digest of nonce followed by password."""
    digest = hashlib.md5()
    digest.update(nonce.encode("utf-8"))
    digest.update(password.encode("utf-8"))
    return digest.hexdigest()


def read_password_file(path: str) -> str | None:
    """Read the first line of a password file.

    Returns None when the file is missing, unreadable or empty; an empty
    password file means the daemon accepts unauthenticated connections.
    """
    if not path or not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as fp:
            first_line = fp.readline()
    except (OSError, UnicodeDecodeError):
        return None
    password = first_line.strip()
    return password or None


def _candidate_password_files() -> list[str]:
    """Well-known password file locations, most specific first."""
    paths = [os.path.join(os.getcwd(), PASSWORD_FILE_NAME)]
    data_dir = os.environ.get("BOINC_DATA_DIR")
    if data_dir:
        paths.append(os.path.join(data_dir, PASSWORD_FILE_NAME))
    paths.extend(os.path.join(directory, PASSWORD_FILE_NAME) for directory in _DATA_DIRECTORIES)
    return paths


def load_password(
    *,
    password: str | None = None,
    password_file: str | None = None,
    search_default_files: bool = True,
) -> str | None:
    """Resolve the RPC password from args, env vars, and password files."""
    if password:
        return password

    env_password = os.environ.get("BOINC_RPC_PASSWORD")
    if env_password:
        return env_password

    if password_file:
        return read_password_file(password_file)

    if not search_default_files:
        return None
    for path in _candidate_password_files():
        resolved = read_password_file(path)
        if resolved is not None:
            return resolved
    return None
