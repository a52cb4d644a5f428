"""A service that greets in several languages."""

from __future__ import annotations

from enum import Enum

from chainlab.traits import Context


class HelloWorldError(Exception):
    """A greeting operation was refused."""

    class Kind(Enum):
        UNSUPPORTED_LANGUAGE = "Unsupported language."
        DUPLICATE_ENTRY = "Duplicate entry."

    def __init__(self, kind: HelloWorldError.Kind) -> None:
        super().__init__(kind.value)
        self.kind = kind

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HelloWorldError):
            return NotImplemented
        return self.kind is other.kind

    def __hash__(self) -> int:
        return hash(self.kind)


_DEFAULT_GREETINGS = (
    ("en", "Hello, world!"),
    ("sl", "Pozdravljen, svet!"),
    ("de", "Hello Welt!"),
    ("fr", "Bonjour le monde!"),
)


class HelloWorld:
    """Maps language codes to greetings."""

    def __init__(self, ctx: Context) -> None:
        self._helloworlds: dict[str, str] = dict(_DEFAULT_GREETINGS)

    def say_hello(self, ctx: Context, language: str) -> str | None:
        """Returns the greeting for `language`, if one is known."""
        return self._helloworlds.get(language)

    def add_hello(self, ctx: Context, language: str, helloworld: str) -> None:
        """Adds a greeting for a language that has none yet."""
        if language in self._helloworlds:
            raise HelloWorldError(HelloWorldError.Kind.DUPLICATE_ENTRY)
        self._helloworlds[language] = helloworld