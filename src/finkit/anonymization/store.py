from finkit.models import AnonymizationMapping

ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REDACTED = "[REDACTED]"

_COUNTED_TYPES = ("name", "iban", "account", "email", "phone", "address", "collision")


def short_id(number: int, min_length: int = 3) -> str:
    """Encode ``number`` with an alphabet that avoids look-alike characters."""
    base = len(ID_ALPHABET)
    chars: list[str] = []
    n = number
    while n > 0 or len(chars) < min_length:
        chars.append(ID_ALPHABET[n % base])
        n //= base
    return "".join(reversed(chars))


class AnonymizationStore:
    """
    In-memory pseudonym table for one import.

    Never written to disk. Each distinct ``(type, original)`` pair maps to one
    pseudonym until :meth:`clear` is called.
    """

    def __init__(self) -> None:
        self._mappings: dict[str, AnonymizationMapping] = {}
        self._reverse: dict[str, str] = {}
        self._counters: dict[str, int] = dict.fromkeys(_COUNTED_TYPES, 0)

    def clear(self) -> None:
        self._mappings.clear()
        self._reverse.clear()
        self._counters = dict.fromkeys(_COUNTED_TYPES, 0)

    def __len__(self) -> int:
        return len(self._mappings)

    def get_or_create(self, original: str, type_: str) -> str:
        key = f"{type_}:{original}"
        existing = self._mappings.get(key)
        if existing is not None:
            return existing.anonymized

        anonymized = self._pseudonym(original, type_)
        # Masked values (IBAN, phone, redactions) can collide; suffix them so the
        # reverse lookup stays one-to-one.
        base = anonymized
        while anonymized in self._reverse:
            anonymized = f"{base}~{self._next('collision')}"

        self._mappings[key] = AnonymizationMapping(
            original=original,
            anonymized=anonymized,
            type=type_,
        )
        self._reverse[anonymized] = original
        return anonymized

    def get_original(self, anonymized: str) -> str | None:
        return self._reverse.get(anonymized)

    def mappings(self) -> list[AnonymizationMapping]:
        return list(self._mappings.values())

    def _next(self, type_: str) -> int:
        self._counters[type_] = self._counters.get(type_, 0) + 1
        return self._counters[type_]

    def _pseudonym(self, original: str, type_: str) -> str:
        if type_ == "name":
            return f"Person_{short_id(self._next('name'))}"
        if type_ == "account":
            return f"Acc_{short_id(self._next('account'), min_length=6)}"
        if type_ == "address":
            return f"Address_{self._next('address')}"
        if type_ == "iban":
            compact = original.replace(" ", "")
            if len(compact) <= 6:
                return REDACTED
            return compact[:2] + "*" * (len(compact) - 6) + compact[-4:]
        if type_ == "email":
            local, _, domain = original.partition("@")
            if not local or not domain:
                return REDACTED
            return f"{local[0]}***@{domain}"
        if type_ == "phone":
            digits = "".join(char for char in original if char.isdigit())
            if len(digits) < 4:
                return REDACTED
            return "+**********" + digits[-4:]
        return REDACTED
