"""
Credential store access.

Locates the host application's auth file and reads the OAuth entry for a
provider. The file is read-only to this package.
"""

import json
import logging
import math
import os
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional

from .models import OAuthCredential

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "anthropic"
APP_DIR_NAME = "opencode"
AUTH_FILE_NAME = "auth.json"


class CredentialUnavailable(Exception):
    """Raised when no usable OAuth credential can be read."""

    def __init__(self, message: str, path: Path, missing: bool = False):
        super().__init__(message)
        self.path = path
        self.missing = missing


def default_candidate_paths(
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> List[Path]:
    """Build the ordered list of places the auth file may live.

    Environment-derived locations come first, then platform conventions:
    XDG data home, ~/.local/share, %LOCALAPPDATA%, ~/AppData/Local.

    Args:
        environ: Environment mapping (defaults to os.environ)
        home: Home directory (defaults to Path.home())

    Returns:
        Candidate auth file paths in probing order
    """
    environ = os.environ if environ is None else environ
    home = Path.home() if home is None else home

    candidates = []
    if environ.get("XDG_DATA_HOME"):
        candidates.append(Path(environ["XDG_DATA_HOME"]) / APP_DIR_NAME / AUTH_FILE_NAME)
    candidates.append(home / ".local" / "share" / APP_DIR_NAME / AUTH_FILE_NAME)
    if environ.get("LOCALAPPDATA"):
        candidates.append(Path(environ["LOCALAPPDATA"]) / APP_DIR_NAME / AUTH_FILE_NAME)
    candidates.append(home / "AppData" / "Local" / APP_DIR_NAME / AUTH_FILE_NAME)
    return candidates


def resolve_credential_path(
    candidates: Iterable[Path],
    exists: Callable[[Path], bool] = Path.exists,
) -> Path:
    """Return the first existing candidate.

    When none exists the first candidate is returned so error messages can
    name a concrete location. A candidate whose existence cannot be checked
    (for example a permission error on its parent) counts as missing.

    Raises:
        ValueError: If no candidates are given
    """
    first = None
    for candidate in candidates:
        if first is None:
            first = candidate
        try:
            found = exists(candidate)
        except OSError as e:
            logger.debug("Skipping credential candidate %s: %s", candidate, e)
            continue
        if found:
            return candidate
    if first is None:
        raise ValueError("No credential path candidates given")
    return first


def load_credential(path: Path, provider: str = DEFAULT_PROVIDER) -> OAuthCredential:
    """Read the OAuth credential for a provider from an auth file.

    The file is a JSON object keyed by provider name, each entry shaped like
    ``{"type": "oauth", "refresh": str, "access": str, "expires": int}``.

    Args:
        path: Auth file location
        provider: Provider key inside the file

    Returns:
        The provider's OAuthCredential

    Raises:
        CredentialUnavailable: If the file is missing, unparsable, or has no
            OAuth entry for the provider
    """
    path = Path(path)
    try:
        found = path.exists()
    except OSError as e:
        raise CredentialUnavailable(f"Could not access auth file {path}: {e}", path) from e
    if not found:
        raise CredentialUnavailable(f"Auth file not found: {path}", path, missing=True)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise CredentialUnavailable(f"Could not read auth file {path}: {e}", path) from e

    if not isinstance(data, dict):
        raise CredentialUnavailable(f"Auth file {path} is not a JSON object", path)

    entry = data.get(provider)
    if not isinstance(entry, dict) or entry.get("type") != "oauth":
        raise CredentialUnavailable(f"No OAuth credentials found for {provider}", path)

    refresh = entry.get("refresh")
    access = entry.get("access")
    expires = entry.get("expires")
    if not isinstance(refresh, str) or not isinstance(access, str):
        raise CredentialUnavailable(f"OAuth entry for {provider} is missing tokens", path)
    if isinstance(expires, bool) or not isinstance(expires, (int, float)):
        raise CredentialUnavailable(f"OAuth entry for {provider} has no expiry", path)
    if isinstance(expires, float) and not math.isfinite(expires):
        raise CredentialUnavailable(f"OAuth entry for {provider} has an invalid expiry", path)

    logger.debug("Loaded %s OAuth credential from %s", provider, path)
    return OAuthCredential(
        refresh_token=refresh,
        access_token=access,
        expires_at=int(expires),
    )
