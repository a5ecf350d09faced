from dataclasses import dataclass
import re

@dataclass(frozen=True)
class ConfigHash:
    """
    Value Object representing the content hash of a configuration directory.
    Used as the remote staging directory name, so the format is validated.
    """
    value: str

    def __post_init__(self):
        if not self._is_valid(self.value):
            raise ValueError(f"Invalid config hash format: {self.value}")

    @staticmethod
    def _is_valid(value: str) -> bool:
        # `nix-hash` default output: MD5 of the NAR serialisation, base16
        return bool(re.match(r'^[0-9a-f]{32}$', value))

    def __str__(self):
        return self.value
