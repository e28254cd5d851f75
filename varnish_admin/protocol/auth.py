"""
Challenge-Response Authentication

When the admin listener is started with a secret file it greets new
connections with status 107 and a random challenge. The client proves it
knows the secret by answering:

    auth sha256(challenge + "\n" + secret + challenge + "\n")

where challenge is the first 32 characters of the greeting body and the
digest is written as lowercase hex.
"""

import hashlib
import random
import string
from pathlib import Path

from ..config.settings import settings
from .codes import Command


def extract_challenge(body: str) -> str:
    """Return the challenge token carried by a 107 greeting body."""
    return body[:settings.CHALLENGE_LENGTH]


def compute_auth_response(challenge: str, secret: str) -> str:
    """
    Compute the hex digest answering an auth challenge.

    Examples:
        >>> compute_auth_response("ixslvvxrgkjptxmcgnnsdxsvdmvfympg", "foo\\n")
        '455ce847f0073c7ab3b1465f74507b75d3dc064c1e7de3b71e00de9092fdc89a'
    """
    payload = f"{challenge}\n{secret}{challenge}\n"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def auth_command(challenge: str, secret: str) -> str:
    """Build the full auth command line for a challenge."""
    return Command.AUTH.with_args(compute_auth_response(challenge, secret))


def load_secret(path) -> str:
    """
    Read a secret file verbatim.

    The listener hashes the whole file, trailing newline included, so the
    contents are not stripped.
    """
    return Path(path).read_bytes().decode("utf-8")


def generate_challenge() -> str:
    """Generate a random challenge token of lowercase letters."""
    rng = random.SystemRandom()
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(settings.CHALLENGE_LENGTH))
