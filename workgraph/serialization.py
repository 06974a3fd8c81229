from abc import ABC, abstractmethod
from hashlib import blake2b
from hmac import compare_digest
from threading import local as thread_context
from typing import TYPE_CHECKING, TypeVar, final

from pydantic import BaseModel
from zstandard import ZstdCompressor, ZstdDecompressor

from .exceptions import TamperedDataError

if TYPE_CHECKING:  # pragma: no cover
    from typing import ClassVar

M = TypeVar("M", bound=BaseModel)


class Serializer(ABC):
    @abstractmethod
    def serialize(self, record: BaseModel) -> bytes:
        """Serialize a record to a bytestream."""
        raise NotImplementedError()

    @abstractmethod
    def deserialize(self, data: bytes, model: type[M]) -> M:
        """Deserialize a bytestream into a record of the given model."""
        raise NotImplementedError()

    @abstractmethod
    def compress(self, data: bytes) -> bytes:
        """Compress a bytestream for storage."""
        raise NotImplementedError()

    @abstractmethod
    def decompress(self, data: bytes) -> bytes:
        """Decompress a bytestream from storage."""
        raise NotImplementedError()

    @final
    def dump(self, record: BaseModel) -> bytes:
        """Serialize and compress a record into a bytestream for storage."""
        return self.compress(self.serialize(record))

    @final
    def load(self, data: bytes, model: type[M]) -> M:
        """Decompress and deserialize a bytestream from storage."""
        return self.deserialize(self.decompress(data), model)


class SignedZstdSerializer(Serializer):
    """
    Stores records as pydantic JSON, compressed with zstd and prefixed with a keyed
    blake2b signature of the compressed payload.
    """

    # Zstd is not thread safe so we should ensure a unique instance per thread
    _thread_context: "ClassVar[thread_context]" = thread_context()

    def __init__(self, secret: str) -> None:
        super().__init__()
        self.secret_key: bytes = secret.encode()

    def serialize(self, record: BaseModel) -> bytes:
        return record.model_dump_json().encode()

    def deserialize(self, data: bytes, model: type[M]) -> M:
        return model.model_validate_json(data)

    @property
    def compressor(self) -> "ZstdCompressor":
        if not hasattr(self._thread_context, "compressor"):
            self._thread_context.compressor = ZstdCompressor()

        return self._thread_context.compressor

    @property
    def decompressor(self) -> "ZstdDecompressor":
        if not hasattr(self._thread_context, "decompressor"):
            self._thread_context.decompressor = ZstdDecompressor()

        return self._thread_context.decompressor

    def _sign(self, payload: bytes) -> bytes:
        signer = blake2b(digest_size=16, key=self.secret_key, usedforsecurity=True)
        signer.update(payload)
        return signer.hexdigest().encode()

    def compress(self, data: bytes) -> bytes:
        compressed = self.compressor.compress(data)
        return self._sign(compressed) + b"|" + compressed

    def decompress(self, compressed: bytes) -> bytes:
        try:
            signature, compressed = compressed.split(b"|", 1)
        except ValueError as e:
            raise TamperedDataError() from e

        if not compare_digest(self._sign(compressed), signature):
            raise TamperedDataError()

        return self.decompressor.decompress(compressed)
