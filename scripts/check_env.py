"""Preflight check for the checkout service's environment.

Loads ``AppSettings`` from a ``.env`` file so missing Pesapal credentials, a
malformed callback URL or a token lease that is not shorter than the token
lifetime are reported before requests start failing. With
``--probe-storage`` it also opens the credential database and decrypts the
stored token, which proves the path is writable and the encryption secret
still matches what is persisted.

Example::

    python -m scripts.check_env --env-file /srv/checkout/.env --probe-storage
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from checkout.clients import SQLiteCredentialStore, StorageUnavailable
from checkout.core.config import AppSettings, _load_env_file
from checkout.core.crypto import CredentialCipher
from checkout.core.logging import mask_secret

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORAGE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _describe(settings: AppSettings) -> None:
    pesapal = settings.pesapal
    print(f"Pesapal API:      {pesapal.base_url}")
    print(f"Consumer key:     {mask_secret(pesapal.consumer_key)}")
    print(f"Callback URL:     {pesapal.callback_url}")
    print(
        "Token lease:      "
        f"{pesapal.token_lease_minutes} of {pesapal.token_lifetime_minutes} minutes"
    )
    print(f"Credential store: {settings.storage.db_path}")


def _probe_storage(settings: AppSettings) -> int:
    """Open the credential store and decrypt whatever token it holds."""
    cipher = CredentialCipher(
        secret=settings.security.token_encryption_secret
        or settings.pesapal.consumer_secret,
        previous_secrets=settings.security.token_encryption_previous_secrets,
    )
    try:
        store = SQLiteCredentialStore(
            settings.storage.db_path,
            cipher=cipher,
            timeout_seconds=settings.storage.db_timeout_seconds,
        )
        credential = store.get()
    except StorageUnavailable as exc:
        cause = exc.__cause__ or exc
        print(f"Credential store check failed: {exc} ({cause})", file=sys.stderr)
        return EXIT_STORAGE_ERROR

    if credential is None:
        print("Credential store reachable; no token stored yet.")
    else:
        print(
            "Credential store reachable; token valid until "
            f"{credential.expires_at.isoformat()}."
        )
    return EXIT_OK



def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate checkout settings before starting the service."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--probe-storage",
        action="store_true",
        help="Also open the credential database and decrypt the stored token.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    _describe(settings)
    if args.probe_storage:
        return _probe_storage(settings)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
