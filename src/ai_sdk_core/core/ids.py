from __future__ import annotations

import secrets
import string
from collections.abc import Callable

from . import errors as errors_

IdGenerator = Callable[[], str]

_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def create_id_generator(
    *,
    prefix: str | None = None,
    size: int = 16,
    alphabet: str = _ALPHABET,
    separator: str = "-",
) -> IdGenerator:
    """Build a generator of random ids, optionally ``<prefix><separator><random>``."""
    if prefix is None:
        return lambda: "".join(secrets.choice(alphabet) for _ in range(size))

    # the separator must stay unambiguous
    if separator in alphabet:
        raise errors_.InvalidArgumentError(
            argument="separator",
            message=f'The separator "{separator}" must not be part of the alphabet "{alphabet}".',
            value=separator,
        )

    def generate() -> str:
        return f"{prefix}{separator}" + "".join(
            secrets.choice(alphabet) for _ in range(size)
        )

    return generate


generate_id = create_id_generator()
