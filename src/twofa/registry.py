"""Account registry: maps account names to stored provisioning URLs.

The registry only stores and returns strings; parsing a secret out of them is
done by twofa.provisioning. Two implementations are provided: an in-memory
one for tests and embedding, and a JSON file that encrypts each secret with
AES-256-GCM when TWOFA_MASTER_KEY is set.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from twofa import crypto
from twofa.config import settings
from twofa.errors import LookupAmbiguousError, RegistryError

logger = logging.getLogger(__name__)


class AccountRegistry(Protocol):
    def get_secret_url(self, name: str) -> tuple[str, bool]: ...

    def list_account_names(self) -> list[str]: ...

    def add_secret(self, name: str, url: str) -> None: ...


class MemoryRegistry:
    """Dict-backed registry."""

    def __init__(self, accounts: dict[str, str] | None = None) -> None:
        self._accounts: dict[str, str] = dict(accounts or {})

    def get_secret_url(self, name: str) -> tuple[str, bool]:
        url = self._accounts.get(name)
        return (url or "", url is not None)

    def list_account_names(self) -> list[str]:
        return sorted(self._accounts)

    def add_secret(self, name: str, url: str) -> None:
        if name in self._accounts:
            raise RegistryError(f"account {name!r} already exists")
        self._accounts[name] = url


class FileRegistry:
    """JSON list of ``{"account", "secret", "encrypted"}`` records."""

    def __init__(self, path: Path, *, encrypt: bool | None = None) -> None:
        self.path = Path(path)
        self.encrypt = crypto.has_key() if encrypt is None else encrypt

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, ValueError) as exc:
            raise RegistryError(f"cannot read registry {self.path}: {exc}") from exc
        if not isinstance(records, list):
            raise RegistryError(f"registry {self.path} is not a list of records")
        for record in records:
            if not (
                isinstance(record, dict)
                and isinstance(record.get("account"), str)
                and isinstance(record.get("secret"), str)
            ):
                raise RegistryError(f"registry {self.path} has a malformed record: {record!r:.60}")
        return records

    def _save(self, records: list[dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise RegistryError(f"cannot write registry {self.path}: {exc}") from exc

    def get_secret_url(self, name: str) -> tuple[str, bool]:
        matches = [r for r in self._load() if r.get("account") == name]
        if not matches:
            return ("", False)
        if len(matches) > 1:
            raise LookupAmbiguousError(name, len(matches))
        record = matches[0]
        secret = record["secret"]
        if record.get("encrypted"):
            secret = crypto.decrypt(secret)
        return (secret, True)

    def list_account_names(self) -> list[str]:
        return sorted({r["account"] for r in self._load()})

    def add_secret(self, name: str, url: str) -> None:
        records = self._load()
        if any(r.get("account") == name for r in records):
            raise RegistryError(f"account {name!r} already exists")
        if not self.encrypt:
            logger.warning("TWOFA_MASTER_KEY not set; %s is stored unencrypted", name)
        secret = crypto.encrypt(url) if self.encrypt else url
        records.append({"account": name, "secret": secret, "encrypted": self.encrypt})
        self._save(records)
        logger.info("Added account %s to %s (encrypted=%s)", name, self.path, self.encrypt)


def get_registry() -> FileRegistry:
    """Registry configured by TWOFA_REGISTRY_PATH / TWOFA_MASTER_KEY."""
    return FileRegistry(settings.registry_path)
