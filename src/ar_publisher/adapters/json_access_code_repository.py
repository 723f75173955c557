"""JSON file-backed access code repository."""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path

from ar_publisher.domain.access import AccessCode, parse_expiry
from ar_publisher.services.access import AccessCodeRepository

logger = logging.getLogger(__name__)


@dataclass
class JsonAccessCodeRepository(AccessCodeRepository):
    """Keeps codes in memory and rewrites the whole file on every change.

    The file holds a flat ``{code: ISO-8601 expiry}`` mapping. Reads never take
    the lock; writers swap in a fresh dict and replace the file atomically.
    """

    path: Path
    _codes: dict[str, AccessCode] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def load(cls, path: Path) -> "JsonAccessCodeRepository":
        """Load codes from disk; a missing file yields an empty repository."""
        repository = cls(path=path)
        if not path.exists():
            logger.info("No access code file found", extra={"path": str(path)})
            return repository
        raw = json.loads(path.read_text(encoding="utf-8") or "{}")
        if not isinstance(raw, dict):
            raise ValueError(f"{path} must contain a JSON object")
        repository._codes = {
            str(code): AccessCode(code=str(code), expires_at=parse_expiry(expiry))
            for code, expiry in raw.items()
        }
        return repository

    def get(self, code: str) -> AccessCode | None:
        """Return an access code by value."""
        return self._codes.get(code)

    def put(self, access_code: AccessCode) -> None:
        """Create or replace an access code and persist the mapping."""
        normalized = AccessCode(
            code=access_code.code, expires_at=parse_expiry(access_code.expires_at)
        )
        with self._lock:
            codes = dict(self._codes)
            codes[normalized.code] = normalized
            self._persist(codes)
            self._codes = codes

    def delete(self, code: str) -> bool:
        """Delete an access code and persist the mapping."""
        with self._lock:
            if code not in self._codes:
                return False
            codes = dict(self._codes)
            del codes[code]
            self._persist(codes)
            self._codes = codes
            return True

    def list_codes(self) -> list[AccessCode]:
        """Return all codes ordered by expiry."""
        return sorted(self._codes.values(), key=lambda item: item.expires_at)

    def _persist(self, codes: dict[str, AccessCode]) -> None:
        payload = {
            code: access_code.expires_at.isoformat()
            for code, access_code in sorted(codes.items())
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
