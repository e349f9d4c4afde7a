import string

import pytest

from examhub.core.errors import PersistenceConflict
from examhub.services import access_code
from examhub.services.access_code import generate_access_code, normalize_code, random_code


def test_random_code_is_uppercase_hex():
    code = random_code(8)
    assert len(code) == 8
    assert set(code) <= set(string.digits + "ABCDEF")


def test_normalize_code_strips_spaces_and_uppercases():
    assert normalize_code("  abcd 1234 ") == "ABCD1234"
    assert normalize_code("") == ""


@pytest.mark.asyncio
async def test_collision_draws_again(monkeypatch):
    draws = iter(["ABCD1234", "EFGH5678"])
    taken = {"ABCD1234"}

    async def exists(code: str) -> bool:
        return code in taken

    monkeypatch.setattr(access_code, "random_code", lambda length: next(draws))
    assert await generate_access_code(exists) == "EFGH5678"


@pytest.mark.asyncio
async def test_falls_back_to_longer_codes():
    async def short_codes_taken(code: str) -> bool:
        return len(code) == 8

    code = await generate_access_code(short_codes_taken)
    assert len(code) == 12


@pytest.mark.asyncio
async def test_gives_up_when_every_draw_collides():
    async def always_taken(code: str) -> bool:
        return True

    with pytest.raises(PersistenceConflict) as exc:
        await generate_access_code(always_taken)
    assert exc.value.status_code == 409
    assert exc.value.constraint == "unique_access_code"
