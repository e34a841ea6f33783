"""Shared set-up for sample data generators."""

from __future__ import annotations

import random
from abc import ABC

from faker import Faker


class BaseGenerator(ABC):
    """Seeded Faker access for generators.

    Parameters
    ----------
    seed : int | None
        Seeds both the Faker instance and the ``random`` module so a
        sample loan book can be regenerated exactly.
    locale : str
        Faker locale used for names (default ``en_US``).
    """

    def __init__(self, seed: int | None = None, locale: str = "en_US") -> None:
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
            random.seed(seed)

    def unique_id(self, prefix: str, digits: int) -> str:
        """Identifier such as ``L004211`` that this generator has not issued before."""
        return f"{prefix}{self.fake.unique.random_number(digits=digits, fix_len=True)}"
