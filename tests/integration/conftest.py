import pytest
from fakeredis import FakeAsyncConnection
from redis.asyncio import ConnectionPool, Redis

from workgraph.serialization import SignedZstdSerializer
from workgraph.store.redis import RedisStore


@pytest.fixture
def anyio_backend():
    # redis-py's asyncio client is bound to asyncio
    return "asyncio"


@pytest.fixture
async def redis_pool():
    try:
        pool = ConnectionPool.from_url(
            "redis://localhost:6379/0", connection_class=FakeAsyncConnection
        )
        yield pool
    finally:
        await pool.disconnect()


@pytest.fixture
async def redis_store(redis_pool):
    client = Redis.from_pool(redis_pool)
    await client.flushdb()

    yield RedisStore(client, serializer=SignedZstdSerializer("test-secret"))

    await client.flushdb()


@pytest.fixture
def store(redis_store):
    return redis_store
