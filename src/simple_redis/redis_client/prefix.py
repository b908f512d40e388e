"""Key and channel namespacing."""

from collections.abc import Iterable


class PrefixCodec:
    """Maps logical names to physical (prefixed) names and back."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def encode(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def encode_many(self, names: Iterable[str]) -> list[str]:
        return [self.encode(name) for name in names]

    def decode(self, physical: str) -> str:
        """Strip the prefix from the start of a physical name.

        Names outside the namespace are returned unchanged.
        """
        if self.prefix and physical.startswith(self.prefix):
            return physical[len(self.prefix) :]
        return physical
