import pytest

from newhighs.services.highs_store import HighsStoreDB
from newhighs.storage.db import init_db, make_engine, make_session_factory


@pytest.fixture
def anyio_backend():
    return "asyncio"


def quote_item(symbol, last, high52, low52=None, **all_fields):
    """One E*TRADE QuoteData entry."""
    body = {"companyName": f"{symbol} CORP", "lastTrade": last, "high52": high52, "industry": "Tech"}
    if low52 is not None:
        body["low52"] = low52
    body.update(all_fields)
    return {"Product": {"symbol": symbol, "securityType": "EQ"}, "All": body}


@pytest.fixture
def make_item():
    return quote_item


@pytest.fixture
async def store(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'highs.db'}")
    await init_db(engine)
    yield HighsStoreDB(make_session_factory(engine))
    await engine.dispose()
